#!/usr/bin/env python3
"""Clear all watches and price samples and remind to restart backend so no stale timers fire.
Run from backend: python scripts/clear_watch_db.py
"""
import sys

from farewatch.db.session import SessionLocal
from farewatch.services.admin_service import clear_watch_state


def main():
    db = SessionLocal()
    try:
        deleted = clear_watch_state(db)
        print("Watch state cleared. Rows deleted:")
        for table, count in deleted.items():
            print(f"  {table}: {'all' if count < 0 else count}")
        print()
        print("Restart the backend server so the scheduler drops its armed timers.")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
