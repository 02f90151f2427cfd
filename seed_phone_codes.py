"""
Seed the country phone code reference table.
Safe to re-run: rows are matched by ISO code and updated in place.
"""

from phone_auth.core.database import Base, SessionLocal, engine
from phone_auth.models import access_token, country_phone_code, otp_record, user  # noqa: F401
from phone_auth.services.phone_code_service import seed_phone_codes


def run():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        count = seed_phone_codes(db)
        print(f"Seeded {count} country phone codes.")
    finally:
        db.close()


if __name__ == "__main__":
    run()
