import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

from gymportal.config import APP_NAME, DEBUG, CORS_ORIGINS, DB_AUTO_INIT, SCHEDULER_ENABLED
from gymportal.db import get_db_connection, StoreUnavailable
from gymportal.schema import create_schema
from gymportal.tasks import start_scheduler, stop_scheduler

# Import routers
from gymportal.routers import health, auth, checkin, plans
from gymportal.routers.cms import router as cms_router
from gymportal.routers.member import router as member_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info(f"Starting {APP_NAME}...")
    if DB_AUTO_INIT:
        conn = get_db_connection()
        try:
            create_schema(conn)
        finally:
            conn.close()
    if SCHEDULER_ENABLED:
        start_scheduler()
    yield
    # Shutdown
    if SCHEDULER_ENABLED:
        stop_scheduler()
    logger.info(f"Shutting down {APP_NAME}...")


app = FastAPI(
    title=APP_NAME,
    description="API untuk check-in member gym dengan QR code",
    version="1.0.0",
    debug=DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


VALIDATION_MESSAGES = {
    "String should have at least 1 character": "Tidak boleh kosong",
    "Field required": "Wajib diisi",
    "Value error, value is not a valid email address": "Format email tidak valid",
    "Input should be a valid integer": "Harus berupa angka",
    "Input should be a valid number": "Harus berupa angka",
    "Input should be a valid boolean": "Harus berupa true/false",
    "Input should be a valid date": "Format tanggal tidak valid",
}


def _translate_validation(error):
    msg = error["msg"]
    translated = VALIDATION_MESSAGES.get(msg)
    if translated:
        return translated
    if "should have at least" in msg and "character" in msg:
        return f"Minimal {msg.split('at least ')[1].split(' ')[0]} karakter"
    if "should have at most" in msg and "character" in msg:
        return f"Maksimal {msg.split('at most ')[1].split(' ')[0]} karakter"
    if "should be greater than" in msg:
        return f"Harus lebih dari {msg.split('greater than ')[1]}"
    if "should be less than" in msg:
        return f"Harus kurang dari {msg.split('less than ')[1]}"
    return msg


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    parts = []
    for e in exc.errors():
        field = e["loc"][-1] if e.get("loc") else ""
        translated = _translate_validation(e)
        parts.append(f"{field}: {translated}" if field and field != "__root__" else translated)
    return JSONResponse(
        status_code=422,
        content={"detail": {"error_code": "VALIDATION_ERROR", "message": "; ".join(parts)}},
    )


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request, exc):
    logger.error(f"Database unavailable on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "detail": {
                "error_code": "STORE_UNAVAILABLE",
                "message": "Layanan sedang tidak tersedia, silakan coba lagi",
            }
        },
    )


@app.get("/")
def root():
    return {
        "message": f"Welcome to {APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
    }


# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(plans.router)
app.include_router(checkin.router)
app.include_router(cms_router)
app.include_router(member_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8181, reload=True)
