from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey
from phone_auth.core.database import Base
from phone_auth.core.timezone import get_utc_now

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(32), nullable=False, unique=True)
    country_phone_code_id = Column(Integer, ForeignKey("country_phone_codes.id"), nullable=True)
    password_hash = Column(Text, nullable=False)
    phone_verified_at = Column(DateTime)
    last_login_at = Column(DateTime)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    updated_at = Column(DateTime, default=get_utc_now, onupdate=get_utc_now, nullable=False)
