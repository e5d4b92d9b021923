"""
Test Utilities for Gym Portal API
"""
from datetime import datetime
from typing import Optional, Dict, Any

from fastapi.testclient import TestClient

from gymportal.db import get_db_connection
from gymportal.middleware import create_access_token


class APIClient:
    """HTTP Client for API testing, running the app in-process"""

    def __init__(self, client: TestClient):
        self.client = client
        self.token: Optional[str] = None

    def set_token(self, token: str):
        """Set authorization token"""
        self.token = token

    def clear_token(self):
        """Clear authorization token"""
        self.token = None

    def _headers(self, extra_headers: Dict = None) -> Dict:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def get(self, endpoint: str, params: Dict = None):
        return self.client.get(endpoint, params=params, headers=self._headers())

    def post(self, endpoint: str, data: Dict = None):
        return self.client.post(endpoint, json=data, headers=self._headers())

    def put(self, endpoint: str, data: Dict = None):
        return self.client.put(endpoint, json=data, headers=self._headers())

    def patch(self, endpoint: str, data: Dict = None):
        return self.client.patch(endpoint, json=data, headers=self._headers())

    def delete(self, endpoint: str):
        return self.client.delete(endpoint, headers=self._headers())


def token_for(user_id: int, email: str, role: str, token_version: int = 0) -> str:
    """Access token matching a seeded user without going through /auth/login"""
    return create_access_token({
        "user_id": user_id,
        "email": email,
        "role": role,
        "token_version": token_version,
    })


def error_code(response) -> Optional[str]:
    return response.json().get("detail", {}).get("error_code")


# ============== Direct database helpers ==============

def db_execute(sql: str, params=()) -> int:
    """Run one write statement, commit, and return lastrowid"""
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(sql, params)
        conn.commit()
        return cursor.lastrowid
    finally:
        cursor.close()
        conn.close()


def db_fetchone(sql: str, params=()) -> Optional[Dict[str, Any]]:
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(sql, params)
        return cursor.fetchone()
    finally:
        cursor.close()
        conn.close()


def db_fetchall(sql: str, params=()):
    conn = get_db_connection()
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(sql, params)
        return cursor.fetchall()
    finally:
        cursor.close()
        conn.close()


def add_user(name: str, email: str, password_hash: str, role: str = "member", is_active: bool = True) -> int:
    return db_execute(
        """
        INSERT INTO users (name, email, password, role, is_active, token_version, created_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        """,
        (name, email, password_hash, role, 1 if is_active else 0, 0, datetime.now()),
    )


def add_membership(
    member_id: int,
    plan_id: int,
    start_date: datetime,
    end_date: datetime,
    status: str = "active",
    created_at: Optional[datetime] = None,
) -> int:
    return db_execute(
        """
        INSERT INTO memberships (member_id, plan_id, start_date, end_date, status, created_at)
        VALUES (%s, %s, %s, %s, %s, %s)
        """,
        (member_id, plan_id, start_date, end_date, status, created_at or datetime.now()),
    )


def count_rows(table: str, where: str = "", params=()) -> int:
    row = db_fetchone(f"SELECT COUNT(*) AS total FROM {table}{' WHERE ' + where if where else ''}", params)
    return row["total"]
