"""
Member Memberships Router - What the logged-in member is entitled to
"""
import logging

from fastapi import APIRouter, HTTPException, status, Depends

from gymportal.db import get_db_connection
from gymportal.middleware import verify_bearer_token
from gymportal.services.memberships import resolve_current_membership, list_member_memberships
from gymportal.utils.serializers import serialize_membership

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Member - Memberships"])


@router.get("/membership")
def get_my_membership(auth: dict = Depends(verify_bearer_token)):
    """Current membership (the one used at check-in) plus full history"""
    conn = get_db_connection()

    try:
        current = resolve_current_membership(conn, auth["user_id"])
        history = list_member_memberships(conn, auth["user_id"])

        return {
            "success": True,
            "message": None if current else "Anda tidak memiliki membership aktif",
            "data": {
                "has_active_membership": current is not None,
                "current": serialize_membership(current),
                "memberships": [serialize_membership(m) for m in history],
            },
        }

    except Exception as e:
        logger.error(f"Error getting membership for user {auth['user_id']}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_MEMBERSHIP_FAILED", "message": str(e)},
        )
    finally:
        conn.close()
