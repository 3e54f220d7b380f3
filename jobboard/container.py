from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .database import Mongo
from .repositories import InMemoryUserRepository, MongoUserRepository, UserRepository
from .services.gate import AuthorizationGate
from .services.notifications import NotificationPublisher
from .services.password_reset import PasswordResetFlow
from .services.passwords import PasswordHasher
from .services.sessions import SessionManager
from .services.tokens import TokenCodec
from .services.users import UserService


@dataclass
class Container:
    settings: Settings
    repository: UserRepository
    codec: TokenCodec
    hasher: PasswordHasher
    sessions: SessionManager
    resets: PasswordResetFlow
    gate: AuthorizationGate
    users: UserService
    publisher: NotificationPublisher
    mongo: Optional[Mongo] = None

    async def startup(self) -> None:
        if isinstance(self.repository, MongoUserRepository):
            await self.repository.ensure_indexes()
        await self.publisher.connect()

    async def shutdown(self) -> None:
        await self.publisher.close()
        if self.mongo is not None:
            self.mongo.close()


def build_container(
    settings: Settings,
    repository: Optional[UserRepository] = None,
    publisher: Optional[NotificationPublisher] = None,
) -> Container:
    mongo = None
    if repository is None:
        if settings.user_store == "memory":
            repository = InMemoryUserRepository()
        else:
            mongo = Mongo.from_settings(settings)
            repository = MongoUserRepository(mongo.users_collection())

    codec = TokenCodec.from_settings(settings)
    hasher = PasswordHasher(settings.bcrypt_rounds)
    return Container(
        settings=settings,
        repository=repository,
        codec=codec,
        hasher=hasher,
        sessions=SessionManager(repository, codec, hasher),
        resets=PasswordResetFlow(repository, codec, hasher),
        gate=AuthorizationGate(repository, codec),
        users=UserService(repository, hasher),
        publisher=publisher if publisher is not None else NotificationPublisher(settings.redis_url),
        mongo=mongo,
    )
