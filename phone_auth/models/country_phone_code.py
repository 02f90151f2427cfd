from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from phone_auth.core.database import Base
from phone_auth.core.timezone import get_utc_now

class CountryPhoneCode(Base):
    __tablename__ = "country_phone_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    iso_code = Column(String(3), nullable=False, unique=True)
    dial_code = Column(String(8), nullable=False, index=True)
    min_nsn_length = Column(Integer, nullable=False, default=4)
    max_nsn_length = Column(Integer, nullable=False, default=15)
    example_format = Column(String(255))
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)

    __table_args__ = (
        Index("ix_country_phone_codes_active_default", "is_active", "is_default"),
    )
