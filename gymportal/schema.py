"""
Database schema

Tables are written in the column syntax MySQL and SQLite share so the
same definitions back production (MySQL/InnoDB) and the test suite.
"""
import logging

logger = logging.getLogger(__name__)

MYSQL_TABLE_OPTIONS = " ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"

TABLES = [
    (
        "users",
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTO_INCREMENT,
            name VARCHAR(100) NOT NULL,
            email VARCHAR(255) NOT NULL UNIQUE,
            password VARCHAR(255) NOT NULL,
            phone VARCHAR(20) NULL,
            role VARCHAR(20) NOT NULL DEFAULT 'member',
            is_active TINYINT(1) NOT NULL DEFAULT 1,
            token_version INTEGER NOT NULL DEFAULT 0,
            failed_login_attempts INTEGER NOT NULL DEFAULT 0,
            locked_until DATETIME NULL,
            created_at DATETIME NOT NULL,
            updated_at DATETIME NULL
        )
        """,
    ),
    (
        "membership_plans",
        """
        CREATE TABLE IF NOT EXISTS membership_plans (
            id INTEGER PRIMARY KEY AUTO_INCREMENT,
            name VARCHAR(100) NOT NULL,
            description TEXT NULL,
            price DECIMAL(12, 2) NOT NULL,
            duration_months INTEGER NOT NULL,
            is_active TINYINT(1) NOT NULL DEFAULT 1,
            created_at DATETIME NOT NULL,
            updated_at DATETIME NULL
        )
        """,
    ),
    (
        "memberships",
        """
        CREATE TABLE IF NOT EXISTS memberships (
            id INTEGER PRIMARY KEY AUTO_INCREMENT,
            member_id INTEGER NOT NULL,
            plan_id INTEGER NOT NULL,
            start_date DATETIME NOT NULL,
            end_date DATETIME NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'active',
            notes TEXT NULL,
            created_at DATETIME NOT NULL,
            updated_at DATETIME NULL,
            FOREIGN KEY (member_id) REFERENCES users (id),
            FOREIGN KEY (plan_id) REFERENCES membership_plans (id)
        )
        """,
    ),
    (
        "checkin_tokens",
        """
        CREATE TABLE IF NOT EXISTS checkin_tokens (
            id INTEGER PRIMARY KEY AUTO_INCREMENT,
            member_id INTEGER NOT NULL,
            token VARCHAR(128) NOT NULL UNIQUE,
            created_at DATETIME NOT NULL,
            consumed TINYINT(1) NOT NULL DEFAULT 0,
            consumed_at DATETIME NULL,
            FOREIGN KEY (member_id) REFERENCES users (id)
        )
        """,
    ),
    (
        "checkin_events",
        """
        CREATE TABLE IF NOT EXISTS checkin_events (
            id INTEGER PRIMARY KEY AUTO_INCREMENT,
            member_id INTEGER NOT NULL,
            token_id INTEGER NULL,
            checkin_time DATETIME NOT NULL,
            outcome VARCHAR(10) NOT NULL,
            reason VARCHAR(50) NULL,
            has_active_membership TINYINT(1) NOT NULL DEFAULT 0,
            membership_id INTEGER NULL,
            plan_name VARCHAR(100) NULL,
            membership_end_date DATETIME NULL,
            method VARCHAR(20) NOT NULL DEFAULT 'scan',
            checked_by INTEGER NULL,
            created_at DATETIME NOT NULL,
            FOREIGN KEY (member_id) REFERENCES users (id),
            FOREIGN KEY (token_id) REFERENCES checkin_tokens (id) ON DELETE SET NULL
        )
        """,
    ),
]


def table_statements(dialect: str = "mysql") -> list:
    """Return CREATE TABLE statements for the given dialect (mysql or sqlite)."""
    statements = []
    for _, ddl in TABLES:
        ddl = ddl.strip()
        if dialect == "sqlite":
            ddl = ddl.replace("AUTO_INCREMENT", "AUTOINCREMENT")
        elif dialect == "mysql":
            ddl += MYSQL_TABLE_OPTIONS
        else:
            raise ValueError(f"Unsupported dialect: {dialect}")
        statements.append(ddl)
    return statements


def create_schema(conn, dialect: str = "mysql"):
    """Create all tables if they do not exist yet. Commits on success."""
    cursor = conn.cursor()
    try:
        for ddl in table_statements(dialect):
            cursor.execute(ddl)
        conn.commit()
        logger.info("Schema ready (%d tables)", len(TABLES))
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()
