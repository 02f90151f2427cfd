from sqlalchemy.orm import Session

from phone_auth.models.country_phone_code import CountryPhoneCode

DEFAULT_PHONE_CODES = [
    {"name": "Bangladesh", "iso_code": "BD", "dial_code": "+880", "min_nsn_length": 10, "max_nsn_length": 10, "example_format": "17 1234 5678", "is_default": True},
    {"name": "India", "iso_code": "IN", "dial_code": "+91", "min_nsn_length": 10, "max_nsn_length": 10, "example_format": "98765 43210", "is_default": False},
    {"name": "Pakistan", "iso_code": "PK", "dial_code": "+92", "min_nsn_length": 10, "max_nsn_length": 10, "example_format": "301 2345678", "is_default": False},
    {"name": "Nepal", "iso_code": "NP", "dial_code": "+977", "min_nsn_length": 8, "max_nsn_length": 10, "example_format": "981 2345678", "is_default": False},
    {"name": "Sri Lanka", "iso_code": "LK", "dial_code": "+94", "min_nsn_length": 9, "max_nsn_length": 9, "example_format": "71 234 5678", "is_default": False},
    {"name": "United States", "iso_code": "US", "dial_code": "+1", "min_nsn_length": 10, "max_nsn_length": 10, "example_format": "415 555 2671", "is_default": False},
    {"name": "United Kingdom", "iso_code": "GB", "dial_code": "+44", "min_nsn_length": 10, "max_nsn_length": 10, "example_format": "20 7946 0958", "is_default": False},
    {"name": "Canada", "iso_code": "CA", "dial_code": "+1", "min_nsn_length": 10, "max_nsn_length": 10, "example_format": "604 555 0198", "is_default": False},
    {"name": "Singapore", "iso_code": "SG", "dial_code": "+65", "min_nsn_length": 8, "max_nsn_length": 8, "example_format": "8123 4567", "is_default": False},
    {"name": "Philippines", "iso_code": "PH", "dial_code": "+63", "min_nsn_length": 10, "max_nsn_length": 10, "example_format": "917 123 4567", "is_default": False},
]


def list_active_phone_codes(db: Session) -> list[CountryPhoneCode]:
    """Active rules, default first, then alphabetical"""
    return (
        db.query(CountryPhoneCode)
        .filter(CountryPhoneCode.is_active.is_(True))
        .order_by(CountryPhoneCode.is_default.desc(), CountryPhoneCode.name.asc())
        .all()
    )


def seed_phone_codes(db: Session, codes: list[dict] = None) -> int:
    """Insert or update rules keyed by ISO code. Returns the number of rows touched."""
    codes = DEFAULT_PHONE_CODES if codes is None else codes

    for code in codes:
        if code["min_nsn_length"] > code["max_nsn_length"]:
            raise ValueError(f"{code['iso_code']}: min_nsn_length exceeds max_nsn_length")

        row = db.query(CountryPhoneCode).filter_by(iso_code=code["iso_code"]).first()
        if row is None:
            row = CountryPhoneCode(iso_code=code["iso_code"])
            db.add(row)

        row.name = code["name"]
        row.dial_code = code["dial_code"]
        row.min_nsn_length = code["min_nsn_length"]
        row.max_nsn_length = code["max_nsn_length"]
        row.example_format = code.get("example_format")
        row.is_active = code.get("is_active", True)
        row.is_default = code.get("is_default", False)

    db.commit()
    return len(codes)
