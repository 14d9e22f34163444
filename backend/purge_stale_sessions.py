"""
Remove sessions that have not been seen for a long time.

Usage: python purge_stale_sessions.py [hours]
"""
import sys
import os

# Add the backend directory to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from crowdqr.core.config import settings
from crowdqr.db.session import SessionLocal
from crowdqr.services.session_service import purge_stale_sessions


def purge(hours: int):
    db = SessionLocal()
    try:
        deleted = purge_stale_sessions(db, older_than_hours=hours)
        print(f"Deleted {deleted} sessions not seen in the last {hours} hours")
    except Exception as e:
        db.rollback()
        print(f"Purge failed: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    hours = int(sys.argv[1]) if len(sys.argv) > 1 else settings.STALE_SESSION_HOURS
    purge(hours)
