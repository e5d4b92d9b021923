"""
Shared fixtures.

Every test gets its own SQLite database file behind `pymysql.connect`, so
the routers and services run their real SQL (PyMySQL `%s` placeholders,
dict rows) without a MySQL server.
"""
import os
import sqlite3
import sys
from datetime import datetime, date

import pymysql
import pytest

os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DB_AUTO_INIT"] = "false"
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from gymportal.db import get_db_connection
from gymportal.schema import create_schema
from gymportal.utils.helpers import hash_password

from config import TEST_ADMIN, TEST_MEMBER, TEST_PLAN
from utils import APIClient, token_for

sqlite3.register_adapter(datetime, lambda value: value.isoformat(" "))
sqlite3.register_adapter(date, lambda value: value.isoformat())
sqlite3.register_converter("DATETIME", lambda raw: datetime.fromisoformat(raw.decode()))


class SQLiteCursor:
    """Buffered cursor speaking PyMySQL's paramstyle and returning dict rows"""

    def __init__(self, db):
        self._db = db
        self._rows = []
        self.rowcount = -1
        self.lastrowid = None

    def execute(self, sql, params=None):
        sql = sql.replace("%s", "?")
        # writes open a transaction, reads run in autocommit
        if not sql.lstrip().upper().startswith("SELECT") and not self._db.in_transaction:
            self._db.execute("BEGIN IMMEDIATE")
        cur = self._db.execute(sql, tuple(params or ()))
        try:
            self._rows = [dict(row) for row in cur.fetchall()] if cur.description else []
            self.rowcount = cur.rowcount
            self.lastrowid = cur.lastrowid
        finally:
            cur.close()
        return self.rowcount

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        self._rows = []


class SQLiteConnection:
    def __init__(self, path):
        self._db = sqlite3.connect(
            path,
            timeout=10,
            isolation_level=None,
            check_same_thread=False,
            detect_types=sqlite3.PARSE_DECLTYPES,
        )
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA foreign_keys=ON")

    def cursor(self, cursorclass=None):
        return SQLiteCursor(self._db)

    def commit(self):
        if self._db.in_transaction:
            self._db.execute("COMMIT")

    def rollback(self):
        if self._db.in_transaction:
            self._db.execute("ROLLBACK")

    def close(self):
        self.rollback()
        self._db.close()


_password_hashes = {}


def _hashed(password):
    if password not in _password_hashes:
        _password_hashes[password] = hash_password(password)
    return _password_hashes[password]


def _seed(conn):
    cursor = conn.cursor(dictionary=True)
    now = datetime.now()
    ids = {}
    try:
        for key, user in (("admin_id", TEST_ADMIN), ("member_id", TEST_MEMBER)):
            cursor.execute(
                """
                INSERT INTO users (name, email, password, phone, role, is_active, token_version, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (user["name"], user["email"], _hashed(user["password"]), user.get("phone"),
                 user["role"], 1, 0, now),
            )
            ids[key] = cursor.lastrowid

        cursor.execute(
            """
            INSERT INTO membership_plans (name, description, price, duration_months, is_active, created_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (TEST_PLAN["name"], TEST_PLAN["description"], TEST_PLAN["price"],
             TEST_PLAN["duration_months"], 1, now),
        )
        ids["plan_id"] = cursor.lastrowid
        conn.commit()
        return ids
    finally:
        cursor.close()


@pytest.fixture(autouse=True)
def seeded(tmp_path, monkeypatch):
    """Fresh schema plus one admin, one member and one plan"""
    db_path = str(tmp_path / "gym_portal.db")
    setup = sqlite3.connect(db_path)
    setup.execute("PRAGMA journal_mode=WAL")
    setup.close()
    monkeypatch.setattr(pymysql, "connect", lambda **kwargs: SQLiteConnection(db_path))

    conn = get_db_connection()
    try:
        create_schema(conn, dialect="sqlite")
        return _seed(conn)
    finally:
        conn.close()


@pytest.fixture
def hashed_password():
    return _hashed


@pytest.fixture
def app_client():
    from main import app

    return TestClient(app)


@pytest.fixture
def client(app_client):
    return APIClient(app_client)


@pytest.fixture
def admin_client(app_client, seeded):
    api = APIClient(app_client)
    api.set_token(token_for(seeded["admin_id"], TEST_ADMIN["email"], "admin"))
    return api


@pytest.fixture
def member_client(app_client, seeded):
    api = APIClient(app_client)
    api.set_token(token_for(seeded["member_id"], TEST_MEMBER["email"], "member"))
    return api
