"""
Application Configuration
Load settings from environment variables
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Database Configuration
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", 3306))
DB_USER = os.getenv("DB_USER", "root")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_NAME = os.getenv("DB_NAME", "gym_portal")
DB_CONNECT_TIMEOUT = int(os.getenv("DB_CONNECT_TIMEOUT", 5))
DB_AUTO_INIT = os.getenv("DB_AUTO_INIT", "false").lower() == "true"

# Security Configuration
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", 24))
MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", 5))
LOCKOUT_DURATION_MINUTES = int(os.getenv("LOCKOUT_DURATION_MINUTES", 30))

# Application Settings
APP_NAME = os.getenv("APP_NAME", "Gym Portal API")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

# Check-in Settings
CHECKIN_TOKEN_EXPIRY_MINUTES = int(os.getenv("CHECKIN_TOKEN_EXPIRY_MINUTES", 5))
CHECKIN_TOKEN_BYTES = int(os.getenv("CHECKIN_TOKEN_BYTES", 24))
CHECKIN_RECENT_LIMIT = int(os.getenv("CHECKIN_RECENT_LIMIT", 20))
CHECKIN_SESSION_HOURS = int(os.getenv("CHECKIN_SESSION_HOURS", 3))
CHECKIN_TOKEN_RETENTION_DAYS = int(os.getenv("CHECKIN_TOKEN_RETENTION_DAYS", 7))
CHECKIN_TOKEN_CLEANUP_MINUTES = int(os.getenv("CHECKIN_TOKEN_CLEANUP_MINUTES", 15))

# Membership Settings
MEMBERSHIP_EXPIRY_NOTICE_DAYS = int(os.getenv("MEMBERSHIP_EXPIRY_NOTICE_DAYS", 7))

# Scheduler
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
