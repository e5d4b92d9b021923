from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "Gym Portal API is running"}
