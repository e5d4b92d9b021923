"""
Member Notifications Router - Membership expiry notices
"""
import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, status, Depends

from gymportal.config import MEMBERSHIP_EXPIRY_NOTICE_DAYS
from gymportal.db import get_db_connection
from gymportal.middleware import verify_bearer_token
from gymportal.services.memberships import list_expiring_memberships
from gymportal.utils.serializers import serialize_membership

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Member - Notifications"])


@router.get("/expiring")
def get_expiring_notice(auth: dict = Depends(verify_bearer_token)):
    """Memberships of this member that end within the notice window"""
    conn = get_db_connection()

    try:
        now = datetime.now()
        rows = list_expiring_memberships(conn, MEMBERSHIP_EXPIRY_NOTICE_DAYS, member_id=auth["user_id"], now=now)

        data = []
        for row in rows:
            item = serialize_membership(row)
            item["days_remaining"] = (row["end_date"] - now).days
            item["message"] = f"Membership {row['plan_name']} akan berakhir dalam {item['days_remaining']} hari"
            data.append(item)

        return {
            "success": True,
            "data": data,
        }

    except Exception as e:
        logger.error(f"Error getting expiry notices: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_NOTIFICATIONS_FAILED", "message": str(e)},
        )
    finally:
        conn.close()
