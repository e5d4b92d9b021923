import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends
from pydantic import BaseModel, EmailStr, Field

from gymportal.config import MAX_LOGIN_ATTEMPTS, LOCKOUT_DURATION_MINUTES
from gymportal.db import get_db_connection
from gymportal.middleware import create_access_token, verify_bearer_token
from gymportal.services.memberships import resolve_current_membership
from gymportal.utils.helpers import hash_password, verify_password, format_phone_number, to_iso
from gymportal.utils.serializers import serialize_member, serialize_membership

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ============== Request Models ==============

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)


# ============== Endpoints ==============

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest):
    """
    Self-registration for members.
    Returns an access token so the member can generate a check-in QR right away.
    """
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute("SELECT id FROM users WHERE email = %s", (request.email,))
        if cursor.fetchone():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error_code": "EMAIL_EXISTS",
                    "message": "Email sudah terdaftar",
                },
            )

        phone = format_phone_number(request.phone) if request.phone else None
        cursor.execute(
            """
            INSERT INTO users (name, email, password, phone, role, is_active, token_version, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (request.name, request.email, hash_password(request.password), phone,
             "member", 1, 1, datetime.now()),
        )
        user_id = cursor.lastrowid
        conn.commit()

        access_token = create_access_token({
            "user_id": user_id,
            "email": request.email,
            "role": "member",
            "token_version": 1,
        })

        logger.info(f"New member registered: {request.email} (id={user_id})")

        return {
            "success": True,
            "message": "Registrasi berhasil",
            "access_token": access_token,
            "token_type": "bearer",
            "user": {
                "id": user_id,
                "name": request.name,
                "email": request.email,
                "phone": phone,
                "role": "member",
            },
        }

    except HTTPException:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error during registration: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "REGISTER_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.post("/login")
def login(request: LoginRequest):
    """
    Login with email and password.
    Returns JWT access token on success.
    """
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(
            """
            SELECT id, name, email, password, phone, role, is_active,
                   token_version, failed_login_attempts, locked_until
            FROM users
            WHERE email = %s
            """,
            (request.email,),
        )
        user = cursor.fetchone()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={
                    "error_code": "INVALID_CREDENTIALS",
                    "message": "Email atau password salah",
                },
            )

        # Check if account is locked
        if user["locked_until"] and datetime.now() < user["locked_until"]:
            remaining_minutes = int(
                (user["locked_until"] - datetime.now()).total_seconds() / 60
            )
            raise HTTPException(
                status_code=status.HTTP_423_LOCKED,
                detail={
                    "error_code": "ACCOUNT_LOCKED",
                    "message": f"Akun terkunci. Coba lagi dalam {remaining_minutes} menit.",
                },
            )

        # Check if account is active
        if not user["is_active"]:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={
                    "error_code": "ACCOUNT_INACTIVE",
                    "message": "Akun tidak aktif. Hubungi administrator.",
                },
            )

        if not verify_password(request.password, user["password"]):
            failed_attempts = (user["failed_login_attempts"] or 0) + 1

            if failed_attempts >= MAX_LOGIN_ATTEMPTS:
                locked_until = datetime.now() + timedelta(minutes=LOCKOUT_DURATION_MINUTES)
                cursor.execute(
                    """
                    UPDATE users
                    SET failed_login_attempts = %s, locked_until = %s
                    WHERE id = %s
                    """,
                    (failed_attempts, locked_until, user["id"]),
                )
                conn.commit()

                raise HTTPException(
                    status_code=status.HTTP_423_LOCKED,
                    detail={
                        "error_code": "ACCOUNT_LOCKED",
                        "message": f"Terlalu banyak percobaan login. Akun terkunci selama {LOCKOUT_DURATION_MINUTES} menit.",
                    },
                )

            cursor.execute(
                "UPDATE users SET failed_login_attempts = %s WHERE id = %s",
                (failed_attempts, user["id"]),
            )
            conn.commit()

            remaining_attempts = MAX_LOGIN_ATTEMPTS - failed_attempts
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={
                    "error_code": "INVALID_CREDENTIALS",
                    "message": f"Email atau password salah. Sisa percobaan: {remaining_attempts}",
                },
            )

        # Reset failed attempts and update token version
        new_token_version = (user["token_version"] or 0) + 1
        cursor.execute(
            """
            UPDATE users
            SET failed_login_attempts = 0, locked_until = NULL, token_version = %s
            WHERE id = %s
            """,
            (new_token_version, user["id"]),
        )
        conn.commit()

        access_token = create_access_token({
            "user_id": user["id"],
            "email": user["email"],
            "role": user["role"] or "member",
            "token_version": new_token_version,
        })

        return {
            "success": True,
            "message": "Login berhasil",
            "access_token": access_token,
            "token_type": "bearer",
            "user": serialize_member(user),
        }

    except HTTPException:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error during login: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "LOGIN_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.post("/logout")
def logout(auth: dict = Depends(verify_bearer_token)):
    """
    Logout user by incrementing token_version (invalidates all existing tokens).
    """
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(
            "UPDATE users SET token_version = token_version + 1 WHERE id = %s",
            (auth["user_id"],),
        )
        conn.commit()

        return {
            "success": True,
            "message": "Logout berhasil",
        }

    except Exception as e:
        conn.rollback()
        logger.error(f"Error during logout: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "LOGOUT_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.post("/change-password")
def change_password(request: ChangePasswordRequest, auth: dict = Depends(verify_bearer_token)):
    """Change password; signs out every other session."""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute("SELECT password FROM users WHERE id = %s", (auth["user_id"],))
        user = cursor.fetchone()

        if not verify_password(request.old_password, user["password"]):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error_code": "INVALID_OLD_PASSWORD",
                    "message": "Password lama salah",
                },
            )

        new_token_version = auth["token_version"] + 1
        cursor.execute(
            "UPDATE users SET password = %s, token_version = %s, updated_at = %s WHERE id = %s",
            (hash_password(request.new_password), new_token_version, datetime.now(), auth["user_id"]),
        )
        conn.commit()

        access_token = create_access_token({
            "user_id": auth["user_id"],
            "email": auth["email"],
            "role": auth["role"],
            "token_version": new_token_version,
        })

        return {
            "success": True,
            "message": "Password berhasil diubah",
            "access_token": access_token,
            "token_type": "bearer",
        }

    except HTTPException:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error changing password: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "CHANGE_PASSWORD_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.get("/me")
def get_current_user(auth: dict = Depends(verify_bearer_token)):
    """
    Get current authenticated user profile with the membership that
    currently counts for check-in.
    """
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(
            "SELECT id, name, email, phone, role, is_active, created_at FROM users WHERE id = %s",
            (auth["user_id"],),
        )
        user = cursor.fetchone()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error_code": "USER_NOT_FOUND", "message": "User tidak ditemukan"},
            )

        membership = resolve_current_membership(conn, user["id"])

        data = serialize_member(user)
        data["created_at"] = to_iso(user["created_at"])
        data["membership"] = serialize_membership(membership)

        return {
            "success": True,
            "data": data,
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting user profile: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_PROFILE_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()
