from sqlalchemy import Column, String, DateTime, ForeignKey
from phone_auth.core.database import Base
from phone_auth.core.timezone import get_utc_now

class AccessToken(Base):
    __tablename__ = "access_tokens"

    id = Column(String(36), primary_key=True)  # JWT "jti"
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(64), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
