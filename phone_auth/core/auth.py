import logging
from datetime import timedelta
from typing import Callable, Optional
from uuid import uuid4

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from phone_auth.core.errors import CredentialIssuanceFailure
from phone_auth.core.timezone import get_utc_now
from phone_auth.models.access_token import AccessToken
from phone_auth.models.user import User

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class CredentialIssuer:
    """Issues, resolves and revokes opaque bearer tokens (signed JWTs backed by access_tokens rows)."""

    def __init__(
        self,
        secret_key: str,
        expire_hours: int = 24 * 30,
        clock: Callable = get_utc_now,
    ):
        self.secret_key = secret_key
        self.expire_hours = expire_hours
        self.clock = clock

    def issue(self, db: Session, user: User, name: str) -> str:
        """Add an AccessToken row to the session and return the bearer token; the caller commits."""
        if not self.secret_key:
            logger.error("JWT_SECRET_KEY is empty; cannot issue tokens")
            raise CredentialIssuanceFailure()

        jti = str(uuid4())
        now = self.clock()
        expires_at = now + timedelta(hours=self.expire_hours)

        try:
            token = jwt.encode(
                {"sub": user.id, "jti": jti, "iat": now, "exp": expires_at},
                self.secret_key,
                algorithm=ALGORITHM,
            )
        except JWTError as e:
            logger.error("Token signing failed for user %s: %s", user.id, e)
            raise CredentialIssuanceFailure() from e

        db.add(AccessToken(id=jti, user_id=user.id, name=name, expires_at=expires_at))
        return token

    def _resolve(self, db: Session, token: str) -> Optional[AccessToken]:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError:
            return None

        jti = payload.get("jti")
        if not jti:
            return None

        access_token = db.get(AccessToken, jti)
        if access_token is None or access_token.user_id != payload.get("sub"):
            return None
        return access_token

    def authenticate(self, db: Session, token: str) -> Optional[User]:
        access_token = self._resolve(db, token)
        if access_token is None or access_token.revoked_at is not None:
            return None
        if access_token.expires_at <= self.clock():
            return None
        return db.get(User, access_token.user_id)

    def revoke(self, db: Session, token: Optional[str]) -> bool:
        """Revoke token if it is ours and still live; anything else is a no-op."""
        if not token:
            return False

        access_token = self._resolve(db, token)
        if access_token is None or access_token.revoked_at is not None:
            return False

        access_token.revoked_at = self.clock()
        db.commit()
        return True
