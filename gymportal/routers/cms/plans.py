"""
CMS Plans Router - Admin management of membership plans
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends
from pydantic import BaseModel, Field

from gymportal.db import get_db_connection
from gymportal.middleware import require_role
from gymportal.utils.serializers import serialize_plan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["CMS - Plans"])

PLAN_COLUMNS = "id, name, description, price, duration_months, is_active, created_at"


# ============== Request Models ==============

class PlanCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    duration_months: int = Field(..., ge=1, le=60)
    is_active: bool = True


class PlanUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    duration_months: Optional[int] = Field(None, ge=1, le=60)
    is_active: Optional[bool] = None


def _plan_not_found():
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error_code": "PLAN_NOT_FOUND", "message": "Paket membership tidak ditemukan"},
    )


# ============== Endpoints ==============

@router.get("")
def list_plans(auth: dict = Depends(require_role("admin"))):
    """List every plan, including inactive ones"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(f"SELECT {PLAN_COLUMNS} FROM membership_plans ORDER BY is_active DESC, price ASC")
        return {
            "success": True,
            "data": [serialize_plan(p) for p in cursor.fetchall()],
        }

    except Exception as e:
        logger.error(f"Error listing plans: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_PLANS_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_plan(request: PlanCreateRequest, auth: dict = Depends(require_role("admin"))):
    """Create a membership plan"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(
            """
            INSERT INTO membership_plans (name, description, price, duration_months, is_active, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (request.name, request.description, request.price, request.duration_months,
             1 if request.is_active else 0, datetime.now()),
        )
        plan_id = cursor.lastrowid
        conn.commit()

        cursor.execute(f"SELECT {PLAN_COLUMNS} FROM membership_plans WHERE id = %s", (plan_id,))
        return {
            "success": True,
            "message": "Paket membership berhasil dibuat",
            "data": serialize_plan(cursor.fetchone()),
        }

    except Exception as e:
        conn.rollback()
        logger.error(f"Error creating plan: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "CREATE_PLAN_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.put("/{plan_id}")
def update_plan(plan_id: int, request: PlanUpdateRequest, auth: dict = Depends(require_role("admin"))):
    """Update plan fields; existing memberships keep their dates"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute("SELECT id FROM membership_plans WHERE id = %s", (plan_id,))
        if not cursor.fetchone():
            raise _plan_not_found()

        update_fields = []
        params = []
        for field, value in request.model_dump(exclude_unset=True).items():
            if field == "is_active":
                value = 1 if value else 0
            update_fields.append(f"{field} = %s")
            params.append(value)

        if not update_fields:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error_code": "NO_FIELDS", "message": "Tidak ada data yang diubah"},
            )

        update_fields.append("updated_at = %s")
        params.extend([datetime.now(), plan_id])
        cursor.execute(
            f"UPDATE membership_plans SET {', '.join(update_fields)} WHERE id = %s",
            params,
        )
        conn.commit()

        cursor.execute(f"SELECT {PLAN_COLUMNS} FROM membership_plans WHERE id = %s", (plan_id,))
        return {
            "success": True,
            "message": "Paket membership berhasil diperbarui",
            "data": serialize_plan(cursor.fetchone()),
        }

    except HTTPException:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error updating plan {plan_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "UPDATE_PLAN_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.delete("/{plan_id}")
def deactivate_plan(plan_id: int, auth: dict = Depends(require_role("admin"))):
    """Soft-delete: hide the plan from sale, keep it for existing memberships"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(
            "UPDATE membership_plans SET is_active = 0, updated_at = %s WHERE id = %s",
            (datetime.now(), plan_id),
        )
        if cursor.rowcount == 0:
            raise _plan_not_found()
        conn.commit()

        return {
            "success": True,
            "message": "Paket membership dinonaktifkan",
        }

    except HTTPException:
        conn.rollback()
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error deactivating plan {plan_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "DELETE_PLAN_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()
