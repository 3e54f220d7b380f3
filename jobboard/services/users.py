import logging
from typing import Any, Dict, List, Optional

from ..errors import ConflictError, Forbidden, NotFoundError, ValidationError
from ..models import Identity, Role, UserPublic, UserUpdate, is_valid_email, password_policy_error
from ..repositories import UserRepository
from .gate import can_access
from .passwords import PasswordHasher

logger = logging.getLogger("jobboard.users")


class UserService:
    def __init__(self, repository: UserRepository, hasher: PasswordHasher):
        self.repository = repository
        self.hasher = hasher

    async def get_profile(self, identity: Identity) -> UserPublic:
        user = await self.repository.find_by_id(identity.id)
        if user is None:
            raise NotFoundError("User not found")
        return user.to_public()

    async def change_password(
        self, identity: Identity, current_password: Optional[str], new_password: Optional[str]
    ) -> None:
        if not current_password or not new_password:
            raise ValidationError("Current password and new password are required")
        policy_error = password_policy_error(new_password, "New password")
        if policy_error:
            raise ValidationError(policy_error)

        user = await self.repository.find_by_id(identity.id)
        if user is None:
            raise NotFoundError("User not found")
        if not await self.hasher.verify(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")

        password_hash = await self.hasher.hash(new_password)
        await self.repository.update(user.id, {"password_hash": password_hash, "refresh_token": None})
        logger.info("User %s changed password", user.id)

    async def list_users(self, identity: Identity, role: Optional[Role] = None) -> List[UserPublic]:
        if not identity.is_admin:
            raise Forbidden("Access denied")
        return [user.to_public() for user in await self.repository.list_users(role)]

    async def get_user(self, identity: Identity, user_id: str) -> UserPublic:
        if not can_access(identity, user_id):
            raise Forbidden("Access denied")
        user = await self.repository.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user.to_public()

    async def update_user(self, identity: Identity, user_id: str, update: UserUpdate) -> UserPublic:
        if not can_access(identity, user_id):
            raise Forbidden("Access denied")

        submitted = update.model_dump(exclude_unset=True)
        changes: Dict[str, Any] = {}
        if "name" in submitted:
            changes["name"] = submitted["name"]
        if "username" in submitted:
            changes["username"] = submitted["username"] or None
        # malformed emails are ignored rather than rejected
        if submitted.get("email") and is_valid_email(submitted["email"]):
            changes["email"] = submitted["email"]

        # only admins may change role or activation
        if identity.is_admin:
            if submitted.get("role") is not None:
                changes["role"] = submitted["role"]
            if isinstance(submitted.get("is_active"), bool):
                changes["is_active"] = submitted["is_active"]

        email = changes.get("email")
        username = changes.get("username")
        if email or username:
            clash = await self.repository.find_conflict(user_id, email, username)
            if clash is not None:
                field = "Email" if email and clash.email == email else "Username"
                raise ConflictError(f"{field} already taken")

        if not changes:
            user = await self.repository.find_by_id(user_id)
        else:
            user = await self.repository.update(user_id, changes)
        if user is None:
            raise NotFoundError("User not found")
        logger.info("User %s updated by %s: %s", user_id, identity.id, sorted(changes))
        return user.to_public()

    async def delete_user(self, identity: Identity, user_id: str) -> None:
        if not identity.is_admin:
            raise Forbidden("Access denied")
        if identity.id == user_id:
            raise ValidationError("Cannot delete your own account")
        if not await self.repository.delete(user_id):
            raise NotFoundError("User not found")
        logger.info("User %s deleted by %s", user_id, identity.id)
