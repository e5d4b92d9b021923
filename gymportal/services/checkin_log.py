"""
Check-in event log (append-only)
"""
from datetime import datetime, date, timedelta
from typing import Optional, Dict, Any, List, Tuple

from gymportal.config import CHECKIN_SESSION_HOURS

EVENT_COLUMNS = """
    e.id, e.member_id, e.token_id, e.checkin_time, e.outcome, e.reason,
    e.has_active_membership, e.membership_id, e.plan_name, e.membership_end_date,
    e.method, e.checked_by, u.name AS member_name, u.email AS member_email
"""


def append_event(
    conn,
    *,
    member_id: int,
    outcome: str,
    checkin_time: datetime,
    token_id: Optional[int] = None,
    reason: Optional[str] = None,
    membership: Optional[Dict[str, Any]] = None,
    method: str = "scan",
    checked_by: Optional[int] = None,
) -> int:
    """
    Insert one event and return its id. Does not commit.

    The membership considered at validation time is copied into the row so
    later plan renames or membership edits don't rewrite history.
    """
    cursor = conn.cursor()
    try:
        cursor.execute(
            """
            INSERT INTO checkin_events (
                member_id, token_id, checkin_time, outcome, reason,
                has_active_membership, membership_id, plan_name, membership_end_date,
                method, checked_by, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                member_id,
                token_id,
                checkin_time,
                outcome,
                reason,
                1 if membership else 0,
                membership["id"] if membership else None,
                membership.get("plan_name") if membership else None,
                membership["end_date"] if membership else None,
                method,
                checked_by,
                datetime.now(),
            ),
        )
        return cursor.lastrowid
    finally:
        cursor.close()


def list_recent(conn, limit: int) -> List[Dict[str, Any]]:
    """Newest events first."""
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            f"""
            SELECT {EVENT_COLUMNS}
            FROM checkin_events e
            JOIN users u ON e.member_id = u.id
            ORDER BY e.checkin_time DESC, e.id DESC
            LIMIT %s
            """,
            (limit,),
        )
        return cursor.fetchall()
    finally:
        cursor.close()


def list_member_events(conn, member_id: int, page: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            "SELECT COUNT(*) AS total FROM checkin_events WHERE member_id = %s",
            (member_id,),
        )
        total = cursor.fetchone()["total"]

        offset = (page - 1) * limit
        cursor.execute(
            f"""
            SELECT {EVENT_COLUMNS}
            FROM checkin_events e
            JOIN users u ON e.member_id = u.id
            WHERE e.member_id = %s
            ORDER BY e.checkin_time DESC, e.id DESC
            LIMIT %s OFFSET %s
            """,
            (member_id, limit, offset),
        )
        return cursor.fetchall(), total
    finally:
        cursor.close()


def daily_summary(conn, day: date, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Counts for one calendar day. `members_inside` is the number of distinct
    members with a successful check-in inside the session window ending now.
    """
    now = now or datetime.now()
    day_start = datetime.combine(day, datetime.min.time())
    day_end = day_start + timedelta(days=1)
    session_start = now - timedelta(hours=CHECKIN_SESSION_HOURS)

    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            SELECT
                COUNT(*) AS total_attempts,
                SUM(CASE WHEN outcome = 'success' THEN 1 ELSE 0 END) AS successful,
                SUM(CASE WHEN outcome = 'failure' THEN 1 ELSE 0 END) AS rejected,
                SUM(CASE WHEN outcome = 'success' AND has_active_membership = 0 THEN 1 ELSE 0 END)
                    AS without_membership,
                COUNT(DISTINCT CASE WHEN outcome = 'success' THEN member_id END) AS unique_members
            FROM checkin_events
            WHERE checkin_time >= %s AND checkin_time < %s
            """,
            (day_start, day_end),
        )
        summary = cursor.fetchone()

        cursor.execute(
            """
            SELECT COUNT(DISTINCT member_id) AS members_inside
            FROM checkin_events
            WHERE outcome = 'success' AND checkin_time >= %s AND checkin_time <= %s
            """,
            (session_start, now),
        )
        inside = cursor.fetchone()

        return {
            "date": day.isoformat(),
            "total_attempts": int(summary["total_attempts"] or 0),
            "successful": int(summary["successful"] or 0),
            "rejected": int(summary["rejected"] or 0),
            "without_membership": int(summary["without_membership"] or 0),
            "unique_members": int(summary["unique_members"] or 0),
            "members_inside": int(inside["members_inside"] or 0),
        }
    finally:
        cursor.close()
