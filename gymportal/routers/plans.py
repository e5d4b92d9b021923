"""
Public Plans Router - membership plans shown on the landing page
"""
import logging

from fastapi import APIRouter, HTTPException, status

from gymportal.db import get_db_connection
from gymportal.utils.serializers import serialize_plan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plans", tags=["Plans"])


@router.get("")
def get_active_plans():
    """List active membership plans, cheapest first"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(
            """
            SELECT id, name, description, price, duration_months, is_active, created_at
            FROM membership_plans
            WHERE is_active = 1
            ORDER BY price ASC, id ASC
            """
        )
        return {
            "success": True,
            "data": [serialize_plan(p) for p in cursor.fetchall()],
        }

    except Exception as e:
        logger.error(f"Error getting plans: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_PLANS_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()
