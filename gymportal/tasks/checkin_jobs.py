"""
Check-in token housekeeping
"""
import logging

from gymportal.db import get_db_connection, StoreUnavailable
from gymportal.services.checkin_tokens import cleanup_expired_tokens

logger = logging.getLogger(__name__)


def job_cleanup_checkin_tokens():
    """Delete unused tokens past expiry and consumed tokens past retention."""
    try:
        conn = get_db_connection()
    except StoreUnavailable as e:
        logger.warning("Token cleanup skipped, database unavailable: %s", e)
        return None

    try:
        removed = cleanup_expired_tokens(conn)
        conn.commit()
        if removed:
            logger.info("Token cleanup done, %d tokens removed", removed)
        return removed

    except Exception as e:
        conn.rollback()
        logger.error("Error in job_cleanup_checkin_tokens: %s", e)
    finally:
        conn.close()
