"""
Service: Session Manager

Purpose:
- Registration, login, refresh-token rotation and logout on top of the token
  codec and the user repository.

Session policy:
- One live refresh token per user, stored on the user record. A refresh token
  is accepted only while it is structurally valid, unexpired AND equal to the
  stored value; login and refresh overwrite it, logout clears it.
- Every successful refresh rotates the stored token with a compare-and-set,
  so a token that has already been used once is rejected.

Key functions:
- register(email, password, name, username=None) -> AuthResult
- login(email, password) -> AuthResult
- refresh(presented_refresh_token) -> TokenPair
- logout(user_id) -> None
"""
import logging
from typing import Optional

from ..errors import (
    AccountDeactivated,
    ConflictError,
    InvalidCredentials,
    SessionExpired,
    SessionInvalid,
    ValidationError,
)
from ..models import AuthResult, Role, TokenPair, is_valid_email, password_policy_error
from ..repositories import UserRepository
from .passwords import PasswordHasher
from .tokens import TokenCodec, TokenError, TokenPurpose

logger = logging.getLogger("jobboard.sessions")


class SessionManager:
    def __init__(self, repository: UserRepository, codec: TokenCodec, hasher: PasswordHasher):
        self.repository = repository
        self.codec = codec
        self.hasher = hasher

    def _issue_pair(self, user_id: str) -> TokenPair:
        return TokenPair(
            access_token=self.codec.issue(TokenPurpose.access, user_id),
            refresh_token=self.codec.issue(TokenPurpose.refresh, user_id),
        )

    async def register(
        self,
        email: Optional[str],
        password: Optional[str],
        name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> AuthResult:
        if not email or not password:
            raise ValidationError("Email and password are required")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")
        policy_error = password_policy_error(password)
        if policy_error:
            raise ValidationError(policy_error)

        if await self.repository.find_by_email(email):
            raise ConflictError("Email already registered")
        if username and await self.repository.find_by_username(username):
            raise ConflictError("Username already taken")

        password_hash = await self.hasher.hash(password)
        user = await self.repository.create(
            {
                "email": email,
                "password_hash": password_hash,
                "name": name,
                "username": username or None,
                "role": Role.user,
                "is_active": True,
            }
        )

        tokens = self._issue_pair(user.id)
        user = await self.repository.update(user.id, {"refresh_token": tokens.refresh_token}) or user
        logger.info("Registered user %s", user.id)
        return AuthResult(user=user.to_public(), **tokens.model_dump())

    async def login(self, email: Optional[str], password: Optional[str]) -> AuthResult:
        if not email or not password:
            raise ValidationError("Email and password are required")

        user = await self.repository.find_by_email(email)
        if user is None:
            await self.hasher.burn(password)
            raise InvalidCredentials()
        if not await self.hasher.verify(password, user.password_hash):
            raise InvalidCredentials()
        if not user.is_active:
            raise AccountDeactivated()

        # overwriting the stored token drops any previous session
        tokens = self._issue_pair(user.id)
        user = await self.repository.update(user.id, {"refresh_token": tokens.refresh_token}) or user
        logger.info("User %s logged in", user.id)
        return AuthResult(user=user.to_public(), **tokens.model_dump())

    async def refresh(self, presented: Optional[str]) -> TokenPair:
        if not presented:
            raise SessionInvalid("Refresh token required")

        check = self.codec.verify(presented, TokenPurpose.refresh)
        if check.error is TokenError.EXPIRED:
            raise SessionExpired("Refresh token expired")
        if not check.ok:
            raise SessionExpired("Invalid refresh token")

        user = await self.repository.find_by_id_and_refresh_token(check.subject, presented)
        if user is None or not user.is_active:
            raise SessionInvalid()

        tokens = self._issue_pair(user.id)
        if not await self.repository.swap_refresh_token(user.id, presented, tokens.refresh_token):
            # another refresh with the same token won the race
            logger.warning("Refresh token for user %s was rotated concurrently", user.id)
            raise SessionInvalid()
        return tokens

    async def logout(self, user_id: Optional[str]) -> None:
        if not user_id:
            return
        await self.repository.update(user_id, {"refresh_token": None})
        logger.info("User %s logged out", user_id)
