import logging
from typing import Optional

from ..errors import InvalidOrExpiredResetToken, ValidationError
from ..models import ResetTicket, is_valid_email, password_policy_error
from ..repositories import UserRepository
from .passwords import PasswordHasher
from .tokens import TokenCodec, TokenPurpose

logger = logging.getLogger("jobboard.password_reset")


class PasswordResetFlow:
    def __init__(self, repository: UserRepository, codec: TokenCodec, hasher: PasswordHasher):
        self.repository = repository
        self.codec = codec
        self.hasher = hasher

    async def request_reset(self, email: Optional[str]) -> Optional[ResetTicket]:
        """Issue a one-hour reset token for ``email``.

        Returns None for unknown emails; callers must answer both cases the
        same way so the endpoint cannot be used to discover accounts.
        """
        if not email:
            raise ValidationError("Email is required")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")

        user = await self.repository.find_by_email(email)
        if user is None:
            return None

        ttl = self.codec.ttl(TokenPurpose.reset)
        token = self.codec.issue(TokenPurpose.reset, user.id, ttl)
        expires_at = self.codec.now() + ttl
        # a new request supersedes any unused token
        await self.repository.update(user.id, {"reset_token": token, "reset_token_expiry": expires_at})
        logger.info("Issued password reset token for user %s", user.id)
        return ResetTicket(user_id=user.id, email=user.email, token=token, expires_at=expires_at)

    async def reset_password(self, token: Optional[str], new_password: Optional[str]) -> str:
        if not token or not new_password:
            raise ValidationError("Token and new password are required")
        policy_error = password_policy_error(new_password)
        if policy_error:
            raise ValidationError(policy_error)

        check = self.codec.verify(token, TokenPurpose.reset)
        if not check.ok:
            raise InvalidOrExpiredResetToken()

        user = await self.repository.find_by_id_and_live_reset_token(check.subject, token, self.codec.now())
        if user is None:
            raise InvalidOrExpiredResetToken()

        password_hash = await self.hasher.hash(new_password)
        # the token is matched again on write so only one concurrent reset wins;
        # refresh token is cleared too, logging out every device
        user = await self.repository.consume_reset_token(
            user.id, token, self.codec.now(), {"password_hash": password_hash, "refresh_token": None}
        )
        if user is None:
            raise InvalidOrExpiredResetToken()
        logger.info("Password reset completed for user %s", user.id)
        return user.id
