import os
from dataclasses import dataclass

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

APP_ENV = os.getenv("APP_ENV", "production")
APP_VERSION = "1.0.0"

STORE_BACKEND_MEMORY = "memory"
STORE_BACKEND_REDIS = "redis"


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


@dataclass(frozen=True)
class Settings:
    room_ttl_seconds: int = 3600
    message_retention_seconds: int = 3600
    max_message_size_bytes: int = 10000
    min_ciphertext_bytes: int = 16
    nonce_length_bytes: int = 12
    salt_length_bytes: int = 16
    sweep_interval_seconds: int = 60
    room_name_max_length: int = 64
    display_name_max_length: int = 32
    store_backend: str = STORE_BACKEND_MEMORY
    environment: str = "production"

    @property
    def development(self) -> bool:
        return self.environment.lower() == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        store_backend = os.getenv("STORE_BACKEND", STORE_BACKEND_MEMORY).strip().lower()
        if store_backend not in (STORE_BACKEND_MEMORY, STORE_BACKEND_REDIS):
            raise ValueError(f"STORE_BACKEND must be '{STORE_BACKEND_MEMORY}' or '{STORE_BACKEND_REDIS}'")
        return cls(
            room_ttl_seconds=_env_int("ROOM_TTL_SECONDS", 3600, minimum=1),
            message_retention_seconds=_env_int("MESSAGE_RETENTION_SECONDS", 3600, minimum=1),
            max_message_size_bytes=_env_int("MAX_MESSAGE_SIZE_BYTES", 10000, minimum=1),
            min_ciphertext_bytes=_env_int("MIN_CIPHERTEXT_BYTES", 16),
            nonce_length_bytes=_env_int("NONCE_LENGTH_BYTES", 12, minimum=1),
            salt_length_bytes=_env_int("SALT_LENGTH_BYTES", 16, minimum=1),
            sweep_interval_seconds=_env_int("SWEEP_INTERVAL_SECONDS", 60, minimum=1),
            room_name_max_length=_env_int("ROOM_NAME_MAX_LENGTH", 64, minimum=1),
            display_name_max_length=_env_int("DISPLAY_NAME_MAX_LENGTH", 32, minimum=1),
            store_backend=store_backend,
            environment=APP_ENV,
        )
