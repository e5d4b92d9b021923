"""
Membership resolution
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

MEMBERSHIP_COLUMNS = """
    m.id, m.member_id, m.plan_id, m.start_date, m.end_date, m.status,
    m.notes, m.created_at, p.name AS plan_name, p.duration_months
"""


def resolve_current_membership(conn, member_id: int, now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """
    Return the membership that counts for check-in right now, or None.

    Among non-cancelled memberships covering `now`, the one ending last
    wins; equal end dates go to the most recently created.
    """
    now = now or datetime.now()
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            f"""
            SELECT {MEMBERSHIP_COLUMNS}
            FROM memberships m
            JOIN membership_plans p ON m.plan_id = p.id
            WHERE m.member_id = %s
              AND m.status <> 'cancelled'
              AND m.start_date <= %s
              AND m.end_date >= %s
            ORDER BY m.end_date DESC, m.created_at DESC, m.id DESC
            LIMIT 1
            """,
            (member_id, now, now),
        )
        return cursor.fetchone()
    finally:
        cursor.close()


def list_member_memberships(conn, member_id: int) -> List[Dict[str, Any]]:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            f"""
            SELECT {MEMBERSHIP_COLUMNS}
            FROM memberships m
            JOIN membership_plans p ON m.plan_id = p.id
            WHERE m.member_id = %s
            ORDER BY m.end_date DESC, m.id DESC
            """,
            (member_id,),
        )
        return cursor.fetchall()
    finally:
        cursor.close()


def list_expiring_memberships(
    conn,
    days: int,
    member_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Active memberships whose end date falls within the next `days` days."""
    now = now or datetime.now()
    params = [now, now + timedelta(days=days)]
    member_filter = ""
    if member_id is not None:
        member_filter = " AND m.member_id = %s"
        params.append(member_id)

    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            f"""
            SELECT {MEMBERSHIP_COLUMNS}, u.name AS member_name, u.email AS member_email
            FROM memberships m
            JOIN membership_plans p ON m.plan_id = p.id
            JOIN users u ON m.member_id = u.id
            WHERE m.status = 'active'
              AND m.end_date >= %s
              AND m.end_date <= %s{member_filter}
            ORDER BY m.end_date ASC
            """,
            params,
        )
        return cursor.fetchall()
    finally:
        cursor.close()


def expire_ended_memberships(conn, now: Optional[datetime] = None) -> int:
    """Flip status of active memberships whose end date has passed."""
    now = now or datetime.now()
    cursor = conn.cursor()
    try:
        cursor.execute(
            """
            UPDATE memberships
            SET status = 'expired', updated_at = %s
            WHERE status = 'active' AND end_date < %s
            """,
            (now, now),
        )
        return cursor.rowcount
    finally:
        cursor.close()
