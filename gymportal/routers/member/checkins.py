"""
Member Check-ins Router - Own check-in history
"""
import logging

from fastapi import APIRouter, HTTPException, status, Depends, Query

from gymportal.db import get_db_connection
from gymportal.middleware import verify_bearer_token
from gymportal.services.checkin_log import list_member_events
from gymportal.utils.serializers import serialize_event, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkins", tags=["Member - Check-ins"])


@router.get("/history")
def get_checkin_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    auth: dict = Depends(verify_bearer_token),
):
    """Check-in attempts of the logged-in member, newest first"""
    conn = get_db_connection()

    try:
        events, total = list_member_events(conn, auth["user_id"], page, limit)

        return {
            "success": True,
            "data": [serialize_event(e) for e in events],
            "pagination": paginate(page, limit, total),
        }

    except Exception as e:
        logger.error(f"Error getting check-in history: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_HISTORY_FAILED", "message": str(e)},
        )
    finally:
        conn.close()
