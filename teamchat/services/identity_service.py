import logging
from typing import Optional

from jose import JWTError

from teamchat.core import security
from teamchat.core.exceptions import AuthenticationError
from teamchat.schemas.user import UserInChat
from teamchat.services.stores import UserStore

logger = logging.getLogger(__name__)


class IdentityVerifier:
    """Turns a bearer credential into a verified user id, or refuses it."""

    def __init__(self, user_store: Optional[UserStore] = None):
        self.user_store = user_store or UserStore()

    def verify_token(self, credential: Optional[str]) -> int:
        if not credential:
            raise AuthenticationError()
        try:
            payload = security.decode_access_token(credential)
        except JWTError as e:
            logger.info(f"Rejected credential: {e}")
            raise AuthenticationError()

        subject = payload.get("sub")
        try:
            return int(subject)
        except (TypeError, ValueError):
            logger.info(f"Rejected credential with unusable subject: {subject!r}")
            raise AuthenticationError()

    async def authenticate(self, credential: Optional[str]) -> UserInChat:
        """Verify the credential and make sure its user still exists."""
        user_id = self.verify_token(credential)
        user = await self.user_store.get_user(user_id)
        if user is None:
            logger.info(f"Rejected credential for unknown user {user_id}")
            raise AuthenticationError()
        return user
