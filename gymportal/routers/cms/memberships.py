"""
CMS Memberships Router - Admin management of memberships
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, Field

from gymportal.config import MEMBERSHIP_EXPIRY_NOTICE_DAYS
from gymportal.db import get_db_connection
from gymportal.middleware import require_role
from gymportal.services.memberships import MEMBERSHIP_COLUMNS, list_expiring_memberships
from gymportal.utils.helpers import add_months
from gymportal.utils.serializers import serialize_membership, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memberships", tags=["CMS - Memberships"])


# ============== Request Models ==============

class CreateMembershipRequest(BaseModel):
    member_id: int
    plan_id: int
    start_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class CancelMembershipRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# ============== Endpoints ==============

@router.get("")
def get_all_memberships(
    member_id: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status", pattern=r"^(active|expired|cancelled)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    auth: dict = Depends(require_role("admin")),
):
    """Get all memberships with filters"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        where_clauses = []
        params = []

        if member_id:
            where_clauses.append("m.member_id = %s")
            params.append(member_id)

        if status_filter:
            where_clauses.append("m.status = %s")
            params.append(status_filter)

        where_sql = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""

        cursor.execute(f"SELECT COUNT(*) AS total FROM memberships m{where_sql}", params)
        total = cursor.fetchone()["total"]

        offset = (page - 1) * limit
        cursor.execute(
            f"""
            SELECT {MEMBERSHIP_COLUMNS}, u.name AS member_name, u.email AS member_email
            FROM memberships m
            JOIN membership_plans p ON m.plan_id = p.id
            JOIN users u ON m.member_id = u.id
            {where_sql}
            ORDER BY m.created_at DESC, m.id DESC
            LIMIT %s OFFSET %s
            """,
            params + [limit, offset],
        )
        rows = cursor.fetchall()

        data = []
        for row in rows:
            item = serialize_membership(row)
            item["member_name"] = row["member_name"]
            item["member_email"] = row["member_email"]
            data.append(item)

        return {
            "success": True,
            "data": data,
            "pagination": paginate(page, limit, total),
        }

    except Exception as e:
        logger.error(f"Error getting memberships: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_MEMBERSHIPS_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.get("/expiring")
def get_expiring_memberships(
    days: int = Query(MEMBERSHIP_EXPIRY_NOTICE_DAYS, ge=1, le=90),
    auth: dict = Depends(require_role("admin")),
):
    """Active memberships ending within the next `days` days"""
    conn = get_db_connection()

    try:
        rows = list_expiring_memberships(conn, days)
        data = []
        for row in rows:
            item = serialize_membership(row)
            item["member_name"] = row["member_name"]
            item["member_email"] = row["member_email"]
            data.append(item)

        return {
            "success": True,
            "data": data,
        }

    except Exception as e:
        logger.error(f"Error getting expiring memberships: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_EXPIRING_FAILED", "message": str(e)},
        )
    finally:
        conn.close()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_membership(request: CreateMembershipRequest, auth: dict = Depends(require_role("admin"))):
    """
    Grant a membership (payment is handled outside this API).
    End date = start date + the plan's duration in months.
    """
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute("SELECT id FROM users WHERE id = %s", (request.member_id,))
        if not cursor.fetchone():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error_code": "MEMBER_NOT_FOUND", "message": "Member tidak ditemukan"},
            )

        cursor.execute(
            "SELECT id, name, duration_months, is_active FROM membership_plans WHERE id = %s",
            (request.plan_id,),
        )
        plan = cursor.fetchone()
        if not plan:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error_code": "PLAN_NOT_FOUND", "message": "Paket membership tidak ditemukan"},
            )
        if not plan["is_active"]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error_code": "PLAN_INACTIVE", "message": "Paket membership tidak aktif"},
            )

        now = datetime.now()
        start_date = request.start_date or now
        end_date = add_months(start_date, plan["duration_months"])

        cursor.execute(
            """
            INSERT INTO memberships
            (member_id, plan_id, start_date, end_date, status, notes, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (request.member_id, request.plan_id, start_date, end_date, "active",
             request.notes, now),
        )
        membership_id = cursor.lastrowid
        conn.commit()

        logger.info(
            f"Admin {auth['user_id']} granted membership #{membership_id} "
            f"({plan['name']}) to member {request.member_id} until {end_date}"
        )

        cursor.execute(
            f"""
            SELECT {MEMBERSHIP_COLUMNS}
            FROM memberships m
            JOIN membership_plans p ON m.plan_id = p.id
            WHERE m.id = %s
            """,
            (membership_id,),
        )
        return {
            "success": True,
            "message": "Membership berhasil dibuat",
            "data": serialize_membership(cursor.fetchone()),
        }

    except HTTPException:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error creating membership: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "CREATE_MEMBERSHIP_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.post("/{membership_id}/cancel")
def cancel_membership(
    membership_id: int,
    request: CancelMembershipRequest,
    auth: dict = Depends(require_role("admin")),
):
    """Cancel a membership; cancelled memberships never count for check-in"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute("SELECT id, status, notes FROM memberships WHERE id = %s", (membership_id,))
        membership = cursor.fetchone()

        if not membership:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"error_code": "MEMBERSHIP_NOT_FOUND", "message": "Membership tidak ditemukan"},
            )

        if membership["status"] == "cancelled":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error_code": "ALREADY_CANCELLED", "message": "Membership sudah dibatalkan"},
            )

        notes = membership["notes"]
        if request.reason:
            notes = f"{notes}\n" if notes else ""
            notes += f"Dibatalkan: {request.reason}"

        cursor.execute(
            "UPDATE memberships SET status = 'cancelled', notes = %s, updated_at = %s WHERE id = %s",
            (notes, datetime.now(), membership_id),
        )
        conn.commit()

        logger.info(f"Admin {auth['user_id']} cancelled membership #{membership_id}")

        return {
            "success": True,
            "message": "Membership berhasil dibatalkan",
        }

    except HTTPException:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error cancelling membership: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "CANCEL_MEMBERSHIP_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()
