import logging
from typing import Iterable, Optional

from ..errors import Forbidden, Unauthorized
from ..models import Identity, Role
from ..repositories import UserRepository
from .tokens import TokenCodec, TokenError, TokenPurpose

logger = logging.getLogger("jobboard.gate")

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def extract_access_token(authorization: Optional[str], cookie: Optional[str]) -> Optional[str]:
    # header wins over cookie when both are present
    return extract_bearer(authorization) or cookie or None


def can_access(identity: Identity, owner_id: str) -> bool:
    """Ownership rule used by resource endpoints: admins, or the owner themself."""
    return identity.is_admin or identity.id == owner_id


class AuthorizationGate:
    def __init__(self, repository: UserRepository, codec: TokenCodec):
        self.repository = repository
        self.codec = codec

    async def authenticate(self, authorization: Optional[str], cookie: Optional[str] = None) -> Identity:
        token = extract_access_token(authorization, cookie)
        if not token:
            raise Unauthorized("Access token required")

        check = self.codec.verify(token, TokenPurpose.access)
        if check.error is TokenError.EXPIRED:
            raise Unauthorized("Token expired")
        if not check.ok:
            raise Unauthorized("Invalid token")

        user = await self.repository.find_by_id(check.subject)
        if user is None or not user.is_active:
            raise Unauthorized("User not found or inactive")
        return user.to_identity()

    async def optional_authenticate(
        self, authorization: Optional[str], cookie: Optional[str] = None
    ) -> Optional[Identity]:
        try:
            return await self.authenticate(authorization, cookie)
        except Unauthorized:
            return None

    @staticmethod
    def authorize(identity: Optional[Identity], allowed_roles: Iterable[Role] = ()) -> Identity:
        if identity is None:
            raise Unauthorized("Authentication required")
        roles = set(allowed_roles)
        if roles and identity.role not in roles:
            logger.info("User %s with role %s denied", identity.id, identity.role.value)
            raise Forbidden("Insufficient permissions")
        return identity
