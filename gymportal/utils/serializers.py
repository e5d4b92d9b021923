"""
Row -> JSON helpers shared by routers and services.

Rows come from DictCursor, so booleans arrive as 0/1 and prices as
Decimal; these helpers normalise them for the API.
"""
from typing import Optional, Dict, Any

from gymportal.utils.helpers import to_iso


def serialize_member(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    return {
        "id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "phone": row.get("phone"),
        "role": row.get("role", "member"),
        "is_active": bool(row.get("is_active", 1)),
    }


def serialize_plan(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    return {
        "id": row["id"],
        "name": row["name"],
        "description": row.get("description"),
        "price": float(row["price"]) if row.get("price") is not None else None,
        "duration_months": row["duration_months"],
        "is_active": bool(row.get("is_active", 1)),
        "created_at": to_iso(row.get("created_at")),
    }


def serialize_membership(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not row:
        return None
    return {
        "id": row["id"],
        "member_id": row["member_id"],
        "plan_id": row["plan_id"],
        "plan_name": row.get("plan_name"),
        "start_date": to_iso(row["start_date"]),
        "end_date": to_iso(row["end_date"]),
        "status": row["status"],
        "created_at": to_iso(row.get("created_at")),
    }


def serialize_event(row: Dict[str, Any]) -> Dict[str, Any]:
    membership = None
    if row.get("membership_id"):
        membership = {
            "id": row["membership_id"],
            "plan_name": row.get("plan_name"),
            "end_date": to_iso(row.get("membership_end_date")),
        }
    return {
        "id": row["id"],
        "member_id": row["member_id"],
        "member_name": row.get("member_name"),
        "member_email": row.get("member_email"),
        "checkin_time": to_iso(row["checkin_time"]),
        "outcome": row["outcome"],
        "success": row["outcome"] == "success",
        "reason": row.get("reason"),
        "has_active_membership": bool(row.get("has_active_membership", 0)),
        "membership": membership,
        "method": row.get("method"),
        "checked_by": row.get("checked_by"),
    }


def paginate(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit,
    }
