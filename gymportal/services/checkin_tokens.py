"""
Check-in token store

Tokens are never flagged as superseded. "Latest token per member" is
derived at validation time from the issue sequence (auto-increment id),
so nothing has to be kept in sync when a member asks for a new QR.

None of these functions commit; the caller owns the transaction.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from gymportal.config import (
    CHECKIN_TOKEN_BYTES,
    CHECKIN_TOKEN_EXPIRY_MINUTES,
    CHECKIN_TOKEN_RETENTION_DAYS,
)
from gymportal.utils.helpers import generate_secure_token

logger = logging.getLogger(__name__)


class MemberNotFound(Exception):
    def __init__(self, member_id):
        super().__init__(f"Member {member_id} not found")
        self.member_id = member_id


def expires_at(token: Dict[str, Any]) -> datetime:
    return token["created_at"] + timedelta(minutes=CHECKIN_TOKEN_EXPIRY_MINUTES)


def generate_token(conn, member_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Issue a fresh check-in token for a member.

    Older unconsumed tokens are left in place; they stop being valid because
    this one has a higher sequence number.

    Raises:
        MemberNotFound: no user with that id
    """
    now = now or datetime.now()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute("SELECT id FROM users WHERE id = %s", (member_id,))
        if not cursor.fetchone():
            raise MemberNotFound(member_id)

        token_value = generate_secure_token(CHECKIN_TOKEN_BYTES)
        cursor.execute(
            """
            INSERT INTO checkin_tokens (member_id, token, created_at, consumed)
            VALUES (%s, %s, %s, %s)
            """,
            (member_id, token_value, now, 0),
        )
        token = {
            "id": cursor.lastrowid,
            "member_id": member_id,
            "token": token_value,
            "created_at": now,
            "consumed": False,
            "consumed_at": None,
        }
        token["expires_at"] = expires_at(token)
        logger.info("Issued check-in token #%s for member %s", token["id"], member_id)
        return token
    finally:
        cursor.close()


def get_token(conn, token_value: str) -> Optional[Dict[str, Any]]:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            SELECT id, member_id, token, created_at, consumed, consumed_at
            FROM checkin_tokens
            WHERE token = %s
            """,
            (token_value,),
        )
        return cursor.fetchone()
    finally:
        cursor.close()


def has_newer_token(conn, member_id: int, token_id: int) -> bool:
    """True if the member was issued another token after this one."""
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            SELECT COUNT(*) AS newer
            FROM checkin_tokens
            WHERE member_id = %s AND id > %s
            """,
            (member_id, token_id),
        )
        return cursor.fetchone()["newer"] > 0
    finally:
        cursor.close()


def consume_token(conn, token_id: int, member_id: int, now: Optional[datetime] = None) -> bool:
    """
    Mark a token consumed if, and only if, it is still unconsumed and is
    still the member's latest token.

    Both conditions are checked by the UPDATE itself, not by earlier reads.
    Returns True for the single caller whose update hit the row; every
    concurrent or later caller gets False.
    """
    now = now or datetime.now()
    cursor = conn.cursor()
    try:
        # MySQL refuses a subquery on the table being updated unless it is
        # materialized as a derived table
        cursor.execute(
            """
            UPDATE checkin_tokens
            SET consumed = 1, consumed_at = %s
            WHERE id = %s AND consumed = 0
              AND NOT EXISTS (
                  SELECT /*+ NO_MERGE(newer) */ 1
                  FROM (
                      SELECT id FROM checkin_tokens WHERE member_id = %s AND id > %s
                  ) AS newer
              )
            """,
            (now, token_id, member_id, token_id),
        )
        return cursor.rowcount == 1
    finally:
        cursor.close()


def cleanup_expired_tokens(conn, now: Optional[datetime] = None) -> int:
    """
    Delete tokens nobody can use any more.

    Unconsumed tokens go once they are past the expiry window, unless a
    rejection event still points at them. Every token older than the
    retention period goes regardless; events referencing it keep their
    snapshot and get token_id set to NULL by the foreign key.
    """
    now = now or datetime.now()
    expired_before = now - timedelta(minutes=CHECKIN_TOKEN_EXPIRY_MINUTES)
    retained_after = now - timedelta(days=CHECKIN_TOKEN_RETENTION_DAYS)

    cursor = conn.cursor()
    try:
        cursor.execute(
            """
            DELETE FROM checkin_tokens
            WHERE created_at < %s
               OR (consumed = 0 AND created_at < %s
                   AND NOT EXISTS (
                       SELECT 1 FROM checkin_events e WHERE e.token_id = checkin_tokens.id
                   ))
            """,
            (retained_after, expired_before),
        )
        return cursor.rowcount
    finally:
        cursor.close()
