"""
CMS Members Router - Admin management of members and admins
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends, Query
from pydantic import BaseModel, EmailStr, Field

from gymportal.db import get_db_connection
from gymportal.middleware import require_role
from gymportal.services.checkin_log import list_member_events
from gymportal.services.memberships import resolve_current_membership, list_member_memberships
from gymportal.utils.helpers import hash_password, format_phone_number, to_iso
from gymportal.utils.serializers import (
    serialize_member, serialize_membership, serialize_event, paginate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/members", tags=["CMS - Members"])

MEMBER_COLUMNS = "id, name, email, phone, role, is_active, created_at"


# ============== Request Models ==============

class MemberCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: str = Field("member", pattern=r"^(member|admin)$")
    is_active: bool = True


class MemberStatusRequest(BaseModel):
    is_active: bool


def _member_not_found():
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error_code": "MEMBER_NOT_FOUND", "message": "Member tidak ditemukan"},
    )


# ============== Endpoints ==============

@router.get("")
def list_members(
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None, pattern=r"^(member|admin)$"),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    auth: dict = Depends(require_role("admin")),
):
    """List members with their current membership"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        where_clauses = []
        params = []

        if search:
            where_clauses.append("(name LIKE %s OR email LIKE %s OR phone LIKE %s)")
            search_term = f"%{search}%"
            params.extend([search_term, search_term, search_term])

        if role:
            where_clauses.append("role = %s")
            params.append(role)

        if is_active is not None:
            where_clauses.append("is_active = %s")
            params.append(1 if is_active else 0)

        where_sql = " WHERE " + " AND ".join(where_clauses) if where_clauses else ""

        cursor.execute(f"SELECT COUNT(*) AS total FROM users{where_sql}", params)
        total = cursor.fetchone()["total"]

        offset = (page - 1) * limit
        cursor.execute(
            f"""
            SELECT {MEMBER_COLUMNS}
            FROM users{where_sql}
            ORDER BY created_at DESC, id DESC
            LIMIT %s OFFSET %s
            """,
            params + [limit, offset],
        )
        users = cursor.fetchall()

        data = []
        for u in users:
            item = serialize_member(u)
            item["created_at"] = to_iso(u["created_at"])
            item["membership"] = serialize_membership(resolve_current_membership(conn, u["id"]))
            data.append(item)

        return {
            "success": True,
            "data": data,
            "pagination": paginate(page, limit, total),
        }

    except Exception as e:
        logger.error(f"Error listing members: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_MEMBERS_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.get("/{member_id}")
def get_member_detail(member_id: int, auth: dict = Depends(require_role("admin"))):
    """Member profile, membership history and latest check-ins"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(f"SELECT {MEMBER_COLUMNS} FROM users WHERE id = %s", (member_id,))
        user = cursor.fetchone()
        if not user:
            raise _member_not_found()

        current = resolve_current_membership(conn, member_id)
        memberships = list_member_memberships(conn, member_id)
        events, total_checkins = list_member_events(conn, member_id, 1, 10)

        data = serialize_member(user)
        data["created_at"] = to_iso(user["created_at"])
        data["membership"] = serialize_membership(current)
        data["memberships"] = [serialize_membership(m) for m in memberships]
        data["recent_checkins"] = [serialize_event(e) for e in events]
        data["total_checkins"] = total_checkins

        return {
            "success": True,
            "data": data,
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting member {member_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "GET_MEMBER_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_member(request: MemberCreateRequest, auth: dict = Depends(require_role("admin"))):
    """Create a member or admin account from the front desk"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute("SELECT id FROM users WHERE email = %s", (request.email,))
        if cursor.fetchone():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error_code": "EMAIL_EXISTS", "message": "Email sudah terdaftar"},
            )

        phone = format_phone_number(request.phone) if request.phone else None
        cursor.execute(
            """
            INSERT INTO users (name, email, password, phone, role, is_active, token_version, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (request.name, request.email, hash_password(request.password), phone,
             request.role, 1 if request.is_active else 0, 0, datetime.now()),
        )
        member_id = cursor.lastrowid
        conn.commit()

        logger.info(f"Admin {auth['user_id']} created {request.role} {request.email} (id={member_id})")

        cursor.execute(f"SELECT {MEMBER_COLUMNS} FROM users WHERE id = %s", (member_id,))
        return {
            "success": True,
            "message": "Member berhasil dibuat",
            "data": serialize_member(cursor.fetchone()),
        }

    except HTTPException:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error creating member: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "CREATE_MEMBER_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()


@router.patch("/{member_id}/status")
def update_member_status(
    member_id: int,
    request: MemberStatusRequest,
    auth: dict = Depends(require_role("admin")),
):
    """
    Suspend (on leave) or reactivate a member.
    Suspending also revokes every session of that member.
    """
    if member_id == auth["user_id"] and not request.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error_code": "CANNOT_SUSPEND_SELF", "message": "Tidak dapat menonaktifkan akun sendiri"},
        )

    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute("SELECT id FROM users WHERE id = %s", (member_id,))
        if not cursor.fetchone():
            raise _member_not_found()

        if request.is_active:
            cursor.execute(
                "UPDATE users SET is_active = 1, updated_at = %s WHERE id = %s",
                (datetime.now(), member_id),
            )
        else:
            cursor.execute(
                """
                UPDATE users
                SET is_active = 0, token_version = token_version + 1, updated_at = %s
                WHERE id = %s
                """,
                (datetime.now(), member_id),
            )
        conn.commit()

        logger.info(f"Admin {auth['user_id']} set member {member_id} is_active={request.is_active}")

        return {
            "success": True,
            "message": "Member diaktifkan" if request.is_active else "Member dinonaktifkan",
        }

    except HTTPException:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error updating member {member_id} status: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error_code": "UPDATE_MEMBER_FAILED", "message": str(e)},
        )
    finally:
        cursor.close()
        conn.close()
