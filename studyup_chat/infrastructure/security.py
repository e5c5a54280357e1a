# studyup_chat/infrastructure/security.py
import datetime
import secrets
from typing import Optional

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError


class SecurityService:
    """Issues and reads the bearer tokens the REST routes accept.

    Tokens are minted by the platform's auth service; this service only
    shares its signing key. The subject claim is the user id.
    """

    def __init__(self, config):
        self.config = config

    def create_access_token(
        self, user_id: str, expires_delta: Optional[datetime.timedelta] = None
    ):
        expire = datetime.datetime.now(datetime.timezone.utc) + (
            expires_delta
            or datetime.timedelta(minutes=self.config.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        to_encode = {"sub": user_id, "nonce": secrets.token_hex(8), "exp": expire}
        encoded_jwt = jwt.encode(
            to_encode, self.config.SECRET_KEY, algorithm=self.config.ALGORITHM
        )
        return encoded_jwt, expire

    def decode_access_token(self, token: str) -> Optional[str]:
        try:
            payload = jwt.decode(
                token, self.config.SECRET_KEY, algorithms=[self.config.ALGORITHM]
            )
        except (ExpiredSignatureError, InvalidTokenError):
            return None
        return payload.get("sub")
