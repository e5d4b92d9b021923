"""
Membership jobs
"""
import logging

from gymportal.db import get_db_connection
from gymportal.services.memberships import expire_ended_memberships

logger = logging.getLogger(__name__)


def job_expire_memberships():
    """
    Membership yang end_date sudah lewat dan status masih 'active'
    diubah menjadi 'expired'. Check-in tidak bergantung pada status ini,
    job ini hanya merapikan data untuk laporan dan CMS.
    """
    conn = get_db_connection()
    try:
        affected = expire_ended_memberships(conn)
        conn.commit()
        logger.info("Expire job done, %d memberships marked as expired", affected)
        return affected

    except Exception as e:
        conn.rollback()
        logger.error("Error in job_expire_memberships: %s", e)
    finally:
        conn.close()
