"""
Check-in validation

A token moves PENDING -> VALIDATED (consumed, event recorded) or is
REJECTED. Rejections are ordinary results, never exceptions; only a
failing database escapes, as StoreUnavailable.
"""
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Dict, Any

import pymysql
from pydantic import BaseModel

from gymportal.config import CHECKIN_TOKEN_EXPIRY_MINUTES
from gymportal.db import StoreUnavailable
from gymportal.services.checkin_log import append_event
from gymportal.services.checkin_tokens import get_token, has_newer_token, consume_token
from gymportal.services.memberships import resolve_current_membership
from gymportal.utils.serializers import serialize_member, serialize_membership

logger = logging.getLogger(__name__)


class CheckInReason(str, Enum):
    NOT_FOUND = "token not found"
    ALREADY_USED = "token already used"
    EXPIRED = "token expired"
    SUPERSEDED = "token superseded"
    NO_ACTIVE_MEMBERSHIP = "no active membership"


REASON_MESSAGES = {
    CheckInReason.NOT_FOUND: "Kode QR tidak valid",
    CheckInReason.ALREADY_USED: "Kode QR sudah digunakan",
    CheckInReason.EXPIRED: "Kode QR sudah kadaluarsa. Minta member membuat kode baru.",
    CheckInReason.SUPERSEDED: "Kode QR sudah diganti dengan kode yang lebih baru",
    CheckInReason.NO_ACTIVE_MEMBERSHIP: "Check-in berhasil. Tidak ada membership aktif.",
}


class CheckInResult(BaseModel):
    success: bool
    reason: Optional[CheckInReason] = None
    member: Optional[Dict[str, Any]] = None
    membership: Optional[Dict[str, Any]] = None
    checkin_time: datetime
    token_id: Optional[int] = None
    event_id: Optional[int] = None

    @property
    def has_active_membership(self) -> bool:
        return self.membership is not None

    @property
    def message(self) -> str:
        if self.reason is not None:
            return REASON_MESSAGES[self.reason]
        return "Check-in berhasil"

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": {
                "reason": self.reason.value if self.reason else None,
                "member": self.member,
                "membership": self.membership,
                "has_active_membership": self.has_active_membership,
                "checkin_time": self.checkin_time.isoformat(),
                "event_id": self.event_id,
            },
        }


def _get_member(conn, member_id: int) -> Optional[Dict[str, Any]]:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            "SELECT id, name, email, phone, role, is_active FROM users WHERE id = %s",
            (member_id,),
        )
        return cursor.fetchone()
    finally:
        cursor.close()


def _rejection_reason(conn, token: Dict[str, Any], now: datetime) -> Optional[CheckInReason]:
    if token["consumed"]:
        return CheckInReason.ALREADY_USED
    if now - token["created_at"] > timedelta(minutes=CHECKIN_TOKEN_EXPIRY_MINUTES):
        return CheckInReason.EXPIRED
    if has_newer_token(conn, token["member_id"], token["id"]):
        return CheckInReason.SUPERSEDED
    return None


def validate_checkin_token(
    conn,
    token_value: str,
    *,
    method: str = "scan",
    checked_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CheckInResult:
    """
    Validate a scanned token and record the attempt.

    Everything from the supersede check to the event insert happens in one
    transaction on `conn`, committed here. The reads before consumption only
    pick the rejection reason; the conditional update is what decides. It
    refuses a token that is already consumed or no longer the member's
    latest, so of two concurrent scans exactly one wins, and a token
    superseded mid-validation is never accepted.

    Raises:
        StoreUnavailable: the database failed; nothing was committed
    """
    now = now or datetime.now()

    try:
        token = get_token(conn, token_value)
        if not token:
            logger.info("Check-in rejected: token not found")
            return CheckInResult(success=False, reason=CheckInReason.NOT_FOUND, checkin_time=now)

        member = _get_member(conn, token["member_id"])
        membership = None

        reason = _rejection_reason(conn, token, now)
        if reason is None:
            membership = resolve_current_membership(conn, token["member_id"], now)
            if not consume_token(conn, token["id"], token["member_id"], now):
                if has_newer_token(conn, token["member_id"], token["id"]):
                    reason = CheckInReason.SUPERSEDED
                else:
                    reason = CheckInReason.ALREADY_USED

        if reason is not None:
            event_id = append_event(
                conn,
                member_id=token["member_id"],
                token_id=token["id"],
                outcome="failure",
                reason=reason.value,
                checkin_time=now,
                method=method,
                checked_by=checked_by,
            )
            conn.commit()
            logger.info(
                "Check-in rejected for member %s (token #%s): %s",
                token["member_id"], token["id"], reason.value,
            )
            return CheckInResult(
                success=False,
                reason=reason,
                member=serialize_member(member),
                checkin_time=now,
                token_id=token["id"],
                event_id=event_id,
            )

        reason = None if membership else CheckInReason.NO_ACTIVE_MEMBERSHIP
        event_id = append_event(
            conn,
            member_id=token["member_id"],
            token_id=token["id"],
            outcome="success",
            reason=reason.value if reason else None,
            membership=membership,
            checkin_time=now,
            method=method,
            checked_by=checked_by,
        )
        conn.commit()

        if membership:
            logger.info(
                "Check-in OK for member %s (membership #%s until %s)",
                token["member_id"], membership["id"], membership["end_date"],
            )
        else:
            logger.info("Check-in OK for member %s without active membership", token["member_id"])

        return CheckInResult(
            success=True,
            reason=reason,
            member=serialize_member(member),
            membership=serialize_membership(membership),
            checkin_time=now,
            token_id=token["id"],
            event_id=event_id,
        )

    except pymysql.MySQLError as e:
        conn.rollback()
        logger.error(f"Check-in store failure: {e}", exc_info=True)
        raise StoreUnavailable(str(e)) from e
