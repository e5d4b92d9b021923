"""
Initialise the Gym Portal database:
  - create all tables
  - insert the default membership plans (if missing)
  - create the first admin account (if missing)

Usage:
    python init_db.py
    ADMIN_EMAIL=owner@gym.id ADMIN_PASSWORD=rahasia123 python init_db.py
"""
import logging
import os
from datetime import datetime

from dotenv import load_dotenv

load_dotenv()

from gymportal.db import get_db_connection
from gymportal.schema import create_schema
from gymportal.utils.helpers import hash_password

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("init_db")

DEFAULT_PLANS = [
    {"name": "Bulanan", "description": "Akses gym 1 bulan", "price": 250000, "duration_months": 1},
    {"name": "3 Bulan", "description": "Akses gym 3 bulan", "price": 675000, "duration_months": 3},
    {"name": "Tahunan", "description": "Akses gym 12 bulan", "price": 2400000, "duration_months": 12},
]


def seed_plans(conn):
    cursor = conn.cursor(dictionary=True)
    try:
        for plan in DEFAULT_PLANS:
            cursor.execute("SELECT id FROM membership_plans WHERE name = %s", (plan["name"],))
            if cursor.fetchone():
                logger.info("Plan '%s' already exists", plan["name"])
                continue
            cursor.execute(
                """
                INSERT INTO membership_plans (name, description, price, duration_months, is_active, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (plan["name"], plan["description"], plan["price"], plan["duration_months"], 1, datetime.now()),
            )
            logger.info("Plan '%s' added", plan["name"])
        conn.commit()
    finally:
        cursor.close()


def seed_admin(conn, email, password, name="Administrator"):
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute("SELECT id FROM users WHERE email = %s", (email,))
        if cursor.fetchone():
            logger.info("Admin %s already exists", email)
            return
        cursor.execute(
            """
            INSERT INTO users (name, email, password, role, is_active, token_version, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (name, email, hash_password(password), "admin", 1, 0, datetime.now()),
        )
        conn.commit()
        logger.info("Admin %s created", email)
    finally:
        cursor.close()


def main():
    conn = get_db_connection()
    try:
        create_schema(conn)
        seed_plans(conn)
        seed_admin(
            conn,
            os.getenv("ADMIN_EMAIL", "admin@gymportal.id"),
            os.getenv("ADMIN_PASSWORD", "admin12345"),
        )
    finally:
        conn.close()


if __name__ == "__main__":
    main()
