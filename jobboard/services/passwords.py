import bcrypt
from fastapi.concurrency import run_in_threadpool

DEFAULT_ROUNDS = 12


class PasswordHasher:
    """bcrypt hashing; the slow work runs in the thread pool to keep the event loop free."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds
        # compared against when a login names an unknown email so both paths cost the same
        self._dummy_hash = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds)).decode()

    def hash_sync(self, password: str) -> str:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(self.rounds)).decode()

    def verify_sync(self, password: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode(), hashed.encode())
        except ValueError:
            return False

    async def hash(self, password: str) -> str:
        return await run_in_threadpool(self.hash_sync, password)

    async def verify(self, password: str, hashed: str) -> bool:
        if not hashed:
            return False
        return await run_in_threadpool(self.verify_sync, password, hashed)

    async def burn(self, password: str) -> None:
        await run_in_threadpool(self.verify_sync, password, self._dummy_hash)
