"""
Check-in Router - QR token generation, validation and recent activity
"""
import logging
from typing import Optional

import pymysql
from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field

from gymportal.config import CHECKIN_RECENT_LIMIT
from gymportal.db import get_db_connection, StoreUnavailable
from gymportal.middleware import verify_bearer_token, require_role
from gymportal.services.checkin_log import list_recent
from gymportal.services.checkin_tokens import generate_token, MemberNotFound
from gymportal.services.checkin_validator import validate_checkin_token
from gymportal.services.memberships import resolve_current_membership
from gymportal.utils.helpers import to_iso
from gymportal.utils.serializers import serialize_event, serialize_membership

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Check-in"])


# ============== Request Models ==============

class ValidateCheckinRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)


# ============== Endpoints ==============

@router.post("/checkin/generate")
def generate_checkin_token(auth: dict = Depends(verify_bearer_token)):
    """Issue a fresh QR token for the logged-in member (replaces any earlier one)"""
    conn = get_db_connection()

    try:
        token = generate_token(conn, auth["user_id"])
        membership = resolve_current_membership(conn, auth["user_id"], token["created_at"])
        conn.commit()

        return {
            "success": True,
            "message": "Kode QR check-in berhasil dibuat",
            "data": {
                "token": token["token"],
                "created_at": to_iso(token["created_at"]),
                "expires_at": to_iso(token["expires_at"]),
                "member_has_active_membership": membership is not None,
                "membership": serialize_membership(membership),
            },
        }

    except MemberNotFound:
        conn.rollback()
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": "MEMBER_NOT_FOUND", "message": "Member tidak ditemukan"},
        )
    except pymysql.MySQLError as e:
        conn.rollback()
        logger.error(f"Error generating check-in token: {e}", exc_info=True)
        raise StoreUnavailable(str(e)) from e
    except Exception as e:
        conn.rollback()
        logger.error(f"Error generating check-in token: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GENERATE_CHECKIN_FAILED", "message": str(e)},
        )
    finally:
        conn.close()


@router.post("/checkin/validate")
def validate_checkin(request: ValidateCheckinRequest, auth: dict = Depends(require_role("admin"))):
    """Validate a member's QR token scanned (or typed) at the front desk"""
    conn = get_db_connection()

    try:
        result = validate_checkin_token(
            conn, request.token.strip(), method="scan", checked_by=auth["user_id"]
        )
        return result.to_response()
    except StoreUnavailable:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Validate check-in error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "VALIDATE_CHECKIN_FAILED", "message": str(e)},
        )
    finally:
        conn.close()


@router.post("/checkin/verify/{token}")
def verify_checkin_link(token: str):
    """
    Public QR deep-link: same rules as /checkin/validate, shaped for a
    result page that shows success or error.
    """
    conn = get_db_connection()

    try:
        result = validate_checkin_token(conn, token.strip(), method="link")
        response = result.to_response()
        response["data"]["redirect_status"] = "success" if result.success else "error"
        return response
    except StoreUnavailable:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Verify check-in link error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "VERIFY_CHECKIN_FAILED", "message": str(e)},
        )
    finally:
        conn.close()


@router.get("/checkins/recent")
def get_recent_checkins(
    limit: Optional[int] = Query(None, ge=1, le=100),
    auth: dict = Depends(require_role("admin")),
):
    """Latest check-in attempts, newest first"""
    conn = get_db_connection()

    try:
        events = list_recent(conn, limit or CHECKIN_RECENT_LIMIT)
        return {
            "success": True,
            "data": [serialize_event(e) for e in events],
        }

    except pymysql.MySQLError as e:
        logger.error(f"Error getting recent check-ins: {e}", exc_info=True)
        raise StoreUnavailable(str(e)) from e
    finally:
        conn.close()
