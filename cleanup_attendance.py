"""Delete every student attendance record. Batch credit balances are left as they are."""
from app.core.database import SessionLocal
from app.models.academics import AttendanceRecord


def cleanup_attendance():
    db = SessionLocal()
    try:
        print("Cleaning up attendance records...")
        deleted = db.query(AttendanceRecord).delete(synchronize_session=False)
        db.commit()
        print(f"Deleted {deleted} records from attendance_records.")
    except Exception as e:
        db.rollback()
        print(f"Error cleaning up attendance records: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    cleanup_attendance()
