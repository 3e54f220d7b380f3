import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load jobboard/.env first, then fall back to the current working directory
ENV_PATH = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=str(ENV_PATH))
load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _list_env(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    mongo_uri: str = "mongodb://localhost:27017"
    db_name: str = "job_board"
    user_store: str = "mongo"
    redis_url: str = ""

    jwt_secret: str = "dev_change_me"
    jwt_refresh_secret: str = "dev_change_me_refresh"
    jwt_reset_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    bcrypt_rounds: int = 12

    app_env: str = "production"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def reset_secret(self) -> str:
        # Reset tokens share the access secret class unless configured otherwise
        return self.jwt_reset_secret or self.jwt_secret

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            mongo_uri=os.getenv("MONGO_URI", defaults.mongo_uri),
            db_name=os.getenv("DB_NAME", defaults.db_name),
            user_store=os.getenv("USER_STORE", defaults.user_store).lower(),
            redis_url=os.getenv("REDIS_URL", defaults.redis_url),
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            jwt_refresh_secret=os.getenv("JWT_REFRESH_SECRET", defaults.jwt_refresh_secret),
            jwt_reset_secret=os.getenv("JWT_RESET_SECRET", defaults.jwt_reset_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
            access_token_expire_minutes=_int_env(
                "ACCESS_TOKEN_EXPIRE_MINUTES", defaults.access_token_expire_minutes
            ),
            refresh_token_expire_days=_int_env("REFRESH_TOKEN_EXPIRE_DAYS", defaults.refresh_token_expire_days),
            bcrypt_rounds=_int_env("BCRYPT_ROUNDS", defaults.bcrypt_rounds),
            app_env=os.getenv("APP_ENV", defaults.app_env).lower(),
            cors_origins=_list_env("CORS_ORIGINS") or ["*"],
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )
