"""
CMS Check-ins Router - Admin dashboard numbers and token maintenance
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query

from gymportal.db import get_db_connection
from gymportal.middleware import require_role
from gymportal.services.checkin_log import daily_summary
from gymportal.services.checkin_tokens import cleanup_expired_tokens

logger = logging.getLogger(__name__)

router = APIRouter(tags=["CMS - Check-ins"])


@router.get("/checkins/summary")
def get_checkin_summary(
    day: Optional[date] = Query(None, alias="date"),
    auth: dict = Depends(require_role("admin")),
):
    """Check-in counts for a day (default today) and how many members are inside"""
    conn = get_db_connection()

    try:
        return {
            "success": True,
            "data": daily_summary(conn, day or date.today()),
        }

    except Exception as e:
        logger.error(f"Error getting check-in summary: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_SUMMARY_FAILED", "message": str(e)},
        )
    finally:
        conn.close()


@router.post("/checkin-tokens/cleanup")
def cleanup_checkin_tokens(auth: dict = Depends(require_role("admin"))):
    """Remove expired and old consumed QR tokens now instead of waiting for the job"""
    conn = get_db_connection()

    try:
        removed = cleanup_expired_tokens(conn)
        conn.commit()

        logger.info(f"Admin {auth['user_id']} removed {removed} check-in tokens")

        return {
            "success": True,
            "message": f"{removed} token dihapus",
            "data": {"removed": removed},
        }

    except Exception as e:
        conn.rollback()
        logger.error(f"Error cleaning up check-in tokens: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "CLEANUP_FAILED", "message": str(e)},
        )
    finally:
        conn.close()
