import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from gymportal.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_HOURS
from gymportal.db import get_db_connection

logger = logging.getLogger(__name__)

security = HTTPBearer()


def verify_bearer_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Verify JWT Bearer token from Authorization header.
    Role and active flag are read REAL-TIME from database, not from token.

    Returns user context dict with: user_id, email, role, token_version
    """
    token = credentials.credentials

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "TOKEN_EXPIRED",
                "message": "Sesi Anda telah habis. Silakan login kembali.",
            },
        )
    except jwt.InvalidTokenError as e:
        logger.error(f"Invalid token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "INVALID_TOKEN",
                "message": "Token tidak valid",
            },
        )

    # Check token type
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "INVALID_TOKEN_TYPE",
                "message": "Token tidak valid",
            },
        )

    user_id = payload.get("user_id")
    token_version = payload.get("token_version")

    # Verify token_version against database (for multi-device logout)
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(
            "SELECT id, email, role, token_version, is_active FROM users WHERE id = %s",
            (user_id,),
        )
        user = cursor.fetchone()
    finally:
        cursor.close()
        conn.close()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "USER_NOT_FOUND",
                "message": "User tidak ditemukan",
            },
        )

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "USER_INACTIVE",
                "message": "Akun Anda tidak aktif. Hubungi administrator.",
            },
        )

    if user["token_version"] != token_version:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error_code": "TOKEN_REVOKED",
                "message": "Sesi Anda telah berakhir. Silakan login kembali.",
            },
        )

    return {
        "user_id": user["id"],
        "email": user["email"],
        "role": user["role"] or "member",
        "token_version": user["token_version"],
    }


def create_access_token(data: dict, expires_hours: int = ACCESS_TOKEN_EXPIRE_HOURS) -> str:
    """
    Create JWT access token with minimal user data.
    The role is NOT trusted from the token - it is checked real-time from database.

    Args:
        data: dict containing user_id, email, role, token_version
        expires_hours: token expiration time in hours (default 24)

    Returns:
        JWT token string
    """
    to_encode = {
        "user_id": data.get("user_id"),
        "email": data.get("email"),
        "role": data.get("role"),
        "token_version": data.get("token_version"),
    }

    expire = datetime.now(timezone.utc) + timedelta(hours=expires_hours)
    to_encode.update({
        "exp": expire,
        "type": "access",
    })
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def check_role(auth: dict, *roles: str) -> None:
    """
    Check if user has one of the given roles. Raises HTTPException if not.

    Usage:
        @router.get("/")
        def list_items(auth: dict = Depends(verify_bearer_token)):
            check_role(auth, "admin")
            # ... rest of the code
    """
    if auth.get("role", "").lower() in roles:
        return None

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "error_code": "PERMISSION_DENIED",
            "message": "Anda tidak memiliki akses untuk operasi ini",
        },
    )


def require_role(*roles: str):
    """
    Dependency returning the auth context when the user has one of `roles`.

    Usage:
        @router.get("/")
        def list_items(auth: dict = Depends(require_role("admin"))):
    """
    def role_checker(auth: dict = Depends(verify_bearer_token)) -> dict:
        check_role(auth, *roles)
        return auth

    return role_checker
