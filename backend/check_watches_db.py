#!/usr/bin/env python3
"""One-off script to see what the watch tables hold: watches and the latest reservations."""
from farewatch.db.session import SessionLocal
from farewatch.models.reservation import Reservation
from farewatch.models.watch import Watch


def main():
    db = SessionLocal()
    try:
        watches = db.query(Watch).all()
        print("=== watches ===")
        print(f"Count: {len(watches)}")
        for w in watches[:15]:
            print(
                f"  id={w.id} owner={w.owner_id!r} provider={w.provider} active={w.is_active} "
                f"every={w.check_interval_seconds}s price={w.current_price} last_checked={w.last_checked_at}"
            )
        if len(watches) > 15:
            print(f"  ... and {len(watches) - 15} more")

        reservations = db.query(Reservation).order_by(Reservation.created_at.desc()).limit(15).all()
        print("\n=== reservations (latest 15) ===")
        for r in reservations:
            print(f"  code={r.code} status={r.status!r} price={r.price} watch={r.source_watch_id} expires={r.expires_at}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
