"""
Test Case 03: QR Check-in
- Token generation and supersession
- Validation outcomes (used, expired, superseded, unknown)
- Membership snapshot on success, check-in without membership
- Concurrent scans of one token
- Recent activity, daily summary, token cleanup
- Database outage
"""
import threading
from datetime import datetime, date, timedelta

import pymysql
import pytest

from gymportal.db import get_db_connection, StoreUnavailable
from gymportal.routers import checkin as checkin_router
from gymportal.services.checkin_log import append_event, list_recent, daily_summary
from gymportal.services.checkin_tokens import (
    generate_token, consume_token, cleanup_expired_tokens, MemberNotFound,
)
from gymportal.services import checkin_validator
from gymportal.services.checkin_validator import validate_checkin_token, CheckInReason
from gymportal.tasks.checkin_jobs import job_cleanup_checkin_tokens

from utils import error_code, add_membership, add_user, db_fetchone, count_rows


def _issue(member_id, now=None):
    conn = get_db_connection()
    try:
        token = generate_token(conn, member_id, now)
        conn.commit()
        return token
    finally:
        conn.close()


def _validate(token_value, now=None):
    conn = get_db_connection()
    try:
        return validate_checkin_token(conn, token_value, now=now)
    finally:
        conn.close()


# ============== Token store ==============

def test_generate_token_for_unknown_member():
    conn = get_db_connection()
    try:
        with pytest.raises(MemberNotFound):
            generate_token(conn, 999)
    finally:
        conn.close()


def test_tokens_are_unique_and_unconsumed(seeded):
    first = _issue(seeded["member_id"])
    second = _issue(seeded["member_id"])

    assert first["token"] != second["token"]
    assert len(first["token"]) >= 32
    assert first["consumed"] is False
    assert second["expires_at"] - second["created_at"] == timedelta(minutes=5)


def test_consume_token_only_once(seeded):
    token = _issue(seeded["member_id"])

    conn = get_db_connection()
    try:
        assert consume_token(conn, token["id"], seeded["member_id"]) is True
        assert consume_token(conn, token["id"], seeded["member_id"]) is False
        conn.commit()
    finally:
        conn.close()

    row = db_fetchone("SELECT consumed, consumed_at FROM checkin_tokens WHERE id = %s", (token["id"],))
    assert row["consumed"] == 1
    assert row["consumed_at"] is not None


def test_consume_token_refuses_superseded_token(seeded):
    old = _issue(seeded["member_id"])
    _issue(seeded["member_id"])

    conn = get_db_connection()
    try:
        assert consume_token(conn, old["id"], seeded["member_id"]) is False
        conn.commit()
    finally:
        conn.close()

    row = db_fetchone("SELECT consumed FROM checkin_tokens WHERE id = %s", (old["id"],))
    assert row["consumed"] == 0


# ============== Validation ==============

def test_new_token_supersedes_previous(seeded):
    old = _issue(seeded["member_id"])
    new = _issue(seeded["member_id"])

    result = _validate(old["token"])
    assert result.success is False
    assert result.reason == CheckInReason.SUPERSEDED
    assert result.reason.value == "token superseded"

    assert _validate(new["token"]).success is True


def test_tokens_of_other_members_do_not_supersede(seeded, hashed_password):
    other_id = add_user("Andi", "andi@gymportal.id", hashed_password("andi12345"))
    mine = _issue(seeded["member_id"])
    _issue(other_id)

    assert _validate(mine["token"]).success is True


def test_second_validation_is_already_used(seeded):
    token = _issue(seeded["member_id"])

    assert _validate(token["token"]).success is True

    again = _validate(token["token"])
    assert again.success is False
    assert again.reason == CheckInReason.ALREADY_USED


def test_expired_token_rejected(seeded):
    issued_at = datetime.now() - timedelta(minutes=10)
    token = _issue(seeded["member_id"], now=issued_at)

    result = _validate(token["token"])
    assert result.success is False
    assert result.reason == CheckInReason.EXPIRED

    row = db_fetchone("SELECT consumed FROM checkin_tokens WHERE id = %s", (token["id"],))
    assert row["consumed"] == 0


def test_expiry_window_edge(seeded):
    issued_at = datetime(2026, 10, 17, 8, 0, 0)
    token = _issue(seeded["member_id"], now=issued_at)

    late = _validate(token["token"], now=issued_at + timedelta(minutes=5, seconds=1))
    assert late.reason == CheckInReason.EXPIRED

    on_time = _validate(token["token"], now=issued_at + timedelta(minutes=5))
    assert on_time.success is True


def test_success_with_membership_ending_tomorrow(seeded):
    now = datetime.now()
    end = now + timedelta(days=1)
    membership_id = add_membership(seeded["member_id"], seeded["plan_id"], now - timedelta(days=29), end)
    token = _issue(seeded["member_id"])

    result = _validate(token["token"])

    assert result.success is True
    assert result.reason is None
    assert result.has_active_membership is True
    assert result.membership["id"] == membership_id
    assert result.membership["end_date"] == end.isoformat()
    assert result.member["email"] == "budi@gymportal.id"

    row = db_fetchone("SELECT consumed FROM checkin_tokens WHERE id = %s", (token["id"],))
    assert row["consumed"] == 1

    event = db_fetchone("SELECT * FROM checkin_events WHERE id = %s", (result.event_id,))
    assert event["outcome"] == "success"
    assert event["has_active_membership"] == 1
    assert event["membership_id"] == membership_id
    assert event["plan_name"] == "Bulanan"
    assert event["membership_end_date"] == end


def test_success_without_membership(seeded):
    token = _issue(seeded["member_id"])

    result = _validate(token["token"])

    assert result.success is True
    assert result.membership is None
    assert result.has_active_membership is False
    assert result.reason == CheckInReason.NO_ACTIVE_MEMBERSHIP

    event = db_fetchone("SELECT * FROM checkin_events WHERE id = %s", (result.event_id,))
    assert event["outcome"] == "success"
    assert event["reason"] == "no active membership"
    assert event["has_active_membership"] == 0


def test_unknown_token_records_nothing():
    result = _validate("tidak-ada")

    assert result.success is False
    assert result.reason == CheckInReason.NOT_FOUND
    assert result.member is None
    assert count_rows("checkin_events") == 0


def test_rejections_are_logged_as_failures(seeded):
    old = _issue(seeded["member_id"])
    _issue(seeded["member_id"])
    _validate(old["token"])

    event = db_fetchone("SELECT outcome, reason, token_id FROM checkin_events WHERE member_id = %s",
                        (seeded["member_id"],))
    assert event["outcome"] == "failure"
    assert event["reason"] == "token superseded"
    assert event["token_id"] == old["id"]


def test_concurrent_validation_single_winner(seeded):
    token = _issue(seeded["member_id"])
    barrier = threading.Barrier(2)
    results = []
    errors = []

    def scan():
        conn = get_db_connection()
        try:
            barrier.wait()
            results.append(validate_checkin_token(conn, token["token"]))
        except Exception as e:
            errors.append(e)
        finally:
            conn.close()

    threads = [threading.Thread(target=scan) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    assert sorted(r.success for r in results) == [False, True]
    loser = next(r for r in results if not r.success)
    assert loser.reason == CheckInReason.ALREADY_USED
    assert count_rows("checkin_events", "outcome = %s", ("success",)) == 1


def test_token_superseded_during_validation_is_not_accepted(seeded, monkeypatch):
    old = _issue(seeded["member_id"])
    _issue(seeded["member_id"])

    # first lookup misses the newer token, as a read from an older snapshot would
    answers = iter([False, True])
    monkeypatch.setattr(checkin_validator, "has_newer_token", lambda *args: next(answers))

    result = _validate(old["token"])
    assert result.success is False
    assert result.reason == CheckInReason.SUPERSEDED

    row = db_fetchone("SELECT consumed FROM checkin_tokens WHERE id = %s", (old["id"],))
    assert row["consumed"] == 0
    assert count_rows("checkin_events", "outcome = %s", ("success",)) == 0


def test_store_failure_rolls_back_and_raises():
    class LostConnectionCursor:
        def execute(self, *args, **kwargs):
            raise pymysql.err.OperationalError(2013, "Lost connection to MySQL server during query")

        def close(self):
            pass

    class LostConnection:
        rolled_back = False

        def cursor(self, dictionary=False):
            return LostConnectionCursor()

        def rollback(self):
            self.rolled_back = True

    conn = LostConnection()
    with pytest.raises(StoreUnavailable):
        validate_checkin_token(conn, "apa-saja")
    assert conn.rolled_back is True


# ============== Event log ==============

def test_list_recent_newest_first(seeded):
    base = datetime(2026, 10, 17, 7, 0)
    conn = get_db_connection()
    try:
        ids = [
            append_event(conn, member_id=seeded["member_id"], outcome="success",
                         checkin_time=base + timedelta(minutes=i))
            for i in range(7)
        ]
        conn.commit()

        recent = list_recent(conn, 5)
    finally:
        conn.close()

    assert [e["id"] for e in recent] == list(reversed(ids))[:5]
    times = [e["checkin_time"] for e in recent]
    assert times == sorted(times, reverse=True)


def test_daily_summary(seeded, hashed_password):
    now = datetime(2026, 10, 17, 18, 0)
    member_a = seeded["member_id"]
    member_b = add_user("Citra", "citra@gymportal.id", hashed_password("citra12345"))
    member_c = add_user("Dodi", "dodi@gymportal.id", hashed_password("dodi12345"))
    membership = {"id": add_membership(member_a, seeded["plan_id"], now - timedelta(days=5), now + timedelta(days=25)),
                  "plan_name": "Bulanan", "end_date": now + timedelta(days=25)}

    conn = get_db_connection()
    try:
        append_event(conn, member_id=member_a, outcome="success", membership=membership,
                     checkin_time=now - timedelta(hours=1))
        append_event(conn, member_id=member_b, outcome="success", reason="no active membership",
                     checkin_time=now - timedelta(minutes=30))
        append_event(conn, member_id=member_a, outcome="failure", reason="token already used",
                     checkin_time=now - timedelta(minutes=10))
        append_event(conn, member_id=member_c, outcome="success",
                     checkin_time=datetime(2026, 10, 16, 20, 0))
        conn.commit()

        summary = daily_summary(conn, date(2026, 10, 17), now=now)
    finally:
        conn.close()

    assert summary == {
        "date": "2026-10-17",
        "total_attempts": 3,
        "successful": 2,
        "rejected": 1,
        "without_membership": 1,
        "unique_members": 2,
        "members_inside": 2,
    }


# ============== Token cleanup ==============

def test_cleanup_removes_stale_tokens_and_keeps_events(seeded, hashed_password):
    now = datetime(2026, 10, 17, 12, 0)
    other_id = add_user("Eka", "eka@gymportal.id", hashed_password("eka12345"))

    used_long_ago = _issue(seeded["member_id"], now=now - timedelta(days=8))
    old_checkin = _validate(used_long_ago["token"], now=now - timedelta(days=8))

    orphan_consumed = _issue(other_id, now=now - timedelta(days=8))
    conn = get_db_connection()
    try:
        consume_token(conn, orphan_consumed["id"], other_id, now=now - timedelta(days=8))
        conn.commit()
    finally:
        conn.close()

    _issue(other_id, now=now - timedelta(minutes=10))

    rejected = _issue(seeded["member_id"], now=now - timedelta(hours=1))
    assert _validate(rejected["token"], now=now).reason == CheckInReason.EXPIRED

    live = _issue(seeded["member_id"], now=now - timedelta(minutes=1))

    conn = get_db_connection()
    try:
        removed = cleanup_expired_tokens(conn, now=now)
        conn.commit()
    finally:
        conn.close()

    assert removed == 3
    remaining = {row["id"] for row in _all_token_ids()}
    assert remaining == {rejected["id"], live["id"]}

    event = db_fetchone("SELECT outcome, token_id, member_id FROM checkin_events WHERE id = %s",
                        (old_checkin.event_id,))
    assert event["outcome"] == "success"
    assert event["token_id"] is None
    assert event["member_id"] == seeded["member_id"]


def test_cleanup_after_retention_removes_validated_tokens(seeded):
    scanned_at = datetime.now() - timedelta(days=30)
    for i in range(3):
        token = _issue(seeded["member_id"], now=scanned_at + timedelta(minutes=i))
        assert _validate(token["token"], now=scanned_at + timedelta(minutes=i)).success is True

    conn = get_db_connection()
    try:
        removed = cleanup_expired_tokens(conn)
        conn.commit()
    finally:
        conn.close()

    assert removed == 3
    assert count_rows("checkin_tokens") == 0
    assert count_rows("checkin_events", "outcome = %s", ("success",)) == 3


def _all_token_ids():
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute("SELECT id FROM checkin_tokens")
        return cursor.fetchall()
    finally:
        cursor.close()
        conn.close()


def test_cleanup_job(seeded):
    _issue(seeded["member_id"], now=datetime.now() - timedelta(hours=1))

    assert job_cleanup_checkin_tokens() == 1
    assert count_rows("checkin_tokens") == 0


# ============== Endpoints ==============

def test_generate_endpoint(member_client):
    response = member_client.post("/api/checkin/generate")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token"]
    created = datetime.fromisoformat(data["created_at"])
    expires = datetime.fromisoformat(data["expires_at"])
    assert expires - created == timedelta(minutes=5)
    assert data["member_has_active_membership"] is False
    assert data["membership"] is None


def test_generate_endpoint_requires_login(client):
    assert client.post("/api/checkin/generate").status_code in (401, 403)


def test_validate_endpoint_flow(member_client, admin_client, seeded):
    now = datetime.now()
    add_membership(seeded["member_id"], seeded["plan_id"], now - timedelta(days=1), now + timedelta(days=29))

    first = member_client.post("/api/checkin/generate").json()["data"]["token"]
    second = member_client.post("/api/checkin/generate").json()["data"]["token"]

    response = admin_client.post("/api/checkin/validate", {"token": first})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["data"]["reason"] == "token superseded"

    body = admin_client.post("/api/checkin/validate", {"token": second}).json()
    assert body["success"] is True
    assert body["message"] == "Check-in berhasil"
    assert body["data"]["has_active_membership"] is True
    assert body["data"]["membership"]["plan_name"] == "Bulanan"
    assert body["data"]["member"]["id"] == seeded["member_id"]

    body = admin_client.post("/api/checkin/validate", {"token": second}).json()
    assert body["success"] is False
    assert body["data"]["reason"] == "token already used"

    event = db_fetchone("SELECT method, checked_by FROM checkin_events WHERE id = %s", (body["data"]["event_id"],))
    assert event["method"] == "scan"
    assert event["checked_by"] == seeded["admin_id"]


def test_validate_endpoint_admin_only(member_client):
    token = member_client.post("/api/checkin/generate").json()["data"]["token"]

    response = member_client.post("/api/checkin/validate", {"token": token})
    assert response.status_code == 403
    assert error_code(response) == "PERMISSION_DENIED"


def test_verify_link_is_public(client, member_client):
    token = member_client.post("/api/checkin/generate").json()["data"]["token"]

    body = client.post(f"/api/checkin/verify/{token}").json()
    assert body["success"] is True
    assert body["data"]["reason"] == "no active membership"
    assert body["data"]["redirect_status"] == "success"

    body = client.post(f"/api/checkin/verify/{token}").json()
    assert body["success"] is False
    assert body["data"]["redirect_status"] == "error"

    body = client.post("/api/checkin/verify/tidak-ada").json()
    assert body["data"]["reason"] == "token not found"
    assert body["data"]["redirect_status"] == "error"


def test_recent_endpoint(admin_client, member_client):
    for _ in range(3):
        token = member_client.post("/api/checkin/generate").json()["data"]["token"]
        admin_client.post("/api/checkin/validate", {"token": token})

    response = admin_client.get("/api/checkins/recent", {"limit": 2})
    assert response.status_code == 200
    events = response.json()["data"]
    assert len(events) == 2
    assert events[0]["id"] > events[1]["id"]
    assert events[0]["member_name"] == "Budi Santoso"
    assert events[0]["success"] is True

    assert len(admin_client.get("/api/checkins/recent").json()["data"]) == 3
    assert member_client.get("/api/checkins/recent").status_code == 403


def test_member_history_endpoint(admin_client, member_client):
    token = member_client.post("/api/checkin/generate").json()["data"]["token"]
    admin_client.post("/api/checkin/validate", {"token": token})
    admin_client.post("/api/checkin/validate", {"token": token})

    body = member_client.get("/api/member/checkins/history", {"limit": 1}).json()
    assert body["pagination"]["total"] == 2
    assert body["pagination"]["total_pages"] == 2
    assert body["data"][0]["outcome"] == "failure"


def test_summary_endpoint(admin_client, member_client):
    token = member_client.post("/api/checkin/generate").json()["data"]["token"]
    admin_client.post("/api/checkin/validate", {"token": token})

    response = admin_client.get("/api/cms/checkins/summary")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["date"] == date.today().isoformat()
    assert data["successful"] == 1
    assert data["without_membership"] == 1
    assert data["members_inside"] == 1


def test_cleanup_endpoint(admin_client, seeded):
    _issue(seeded["member_id"], now=datetime.now() - timedelta(minutes=30))

    response = admin_client.post("/api/cms/checkin-tokens/cleanup")
    assert response.status_code == 200
    assert response.json()["data"]["removed"] == 1


def test_database_down_returns_503(client, monkeypatch):
    def refuse(**kwargs):
        raise pymysql.err.OperationalError(2003, "Can't connect to MySQL server")

    monkeypatch.setattr(pymysql, "connect", refuse)

    response = client.post("/api/checkin/verify/apa-saja")
    assert response.status_code == 503
    assert error_code(response) == "STORE_UNAVAILABLE"


def test_unexpected_validation_error_returns_500(admin_client, client, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("snapshot tidak bisa dibuat")

    monkeypatch.setattr(checkin_router, "validate_checkin_token", broken)

    response = admin_client.post("/api/checkin/validate", {"token": "apa-saja"})
    assert response.status_code == 500
    assert error_code(response) == "VALIDATE_CHECKIN_FAILED"

    response = client.post("/api/checkin/verify/apa-saja")
    assert response.status_code == 500
    assert error_code(response) == "VERIFY_CHECKIN_FAILED"
