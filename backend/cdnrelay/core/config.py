import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./cdnrelay.db")
    DATABASE_ECHO: bool = _flag("DATABASE_ECHO", "false")

    CDN_UPLOAD_URL: str = os.getenv("CDN_UPLOAD_URL", "https://api.cloudku.sbs/cdn/api.php")
    CDN_CONNECT_TIMEOUT: float = float(os.getenv("CDN_CONNECT_TIMEOUT", "10"))
    CDN_UPLOAD_TIMEOUT: float = float(os.getenv("CDN_UPLOAD_TIMEOUT", "300"))
    CDN_FETCH_TIMEOUT: float = float(os.getenv("CDN_FETCH_TIMEOUT", "60"))

    MAX_FILE_SIZE: int = 200 * 1024 * 1024
    UPLOAD_TMP_DIR: str = os.getenv("UPLOAD_TMP_DIR", "/tmp/uploads")
    SHORT_NAME_LENGTH: int = int(os.getenv("SHORT_NAME_LENGTH", "6"))
    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")

    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")
    METRICS_ENABLED: bool = _flag("METRICS_ENABLED", "true")

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise TypeError(f"Unknown setting: {key}")
            setattr(self, key, value)


settings = Settings()
