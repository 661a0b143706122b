import os
from functools import lru_cache
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    env: str = os.getenv("ENV", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Auth
    jwt_secret: str = os.getenv("JWT_SECRET", os.getenv("APP_SECRET", "change-me"))
    jwt_alg: str = os.getenv("JWT_ALG", "HS256")
    jwt_expires_minutes: int = int(os.getenv("JWT_EXPIRES_MINUTES", str(30 * 24 * 60)))
    jwt_refresh_expires_days: int = int(os.getenv("JWT_REFRESH_EXPIRES_DAYS", "90"))
    jwt_issuer: str = os.getenv("JWT_ISSUER", "time-capsule-app")
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Persistence
    database_url: str = (os.getenv("DATABASE_URL") or "").strip()
    storage_backend: str = os.getenv("STORAGE_BACKEND", "auto")  # auto|sql|memory
    allow_memory_fallback: bool = _flag("DB_ALLOW_MEMORY_FALLBACK", "1")

    # Blob store (S3-compatible, local disk otherwise)
    s3_endpoint: str | None = os.getenv("S3_ENDPOINT")
    s3_region: str = os.getenv("S3_REGION", "us-west-004")
    s3_bucket: str | None = os.getenv("S3_BUCKET")
    s3_public_base_url: str | None = os.getenv("S3_PUBLIC_BASE_URL")
    aws_access_key_id: str | None = os.getenv("AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = os.getenv("AWS_SECRET_ACCESS_KEY")
    media_prefix: str = os.getenv("MEDIA_PREFIX", "time-capsule-media/")
    uploads_dir: str = os.getenv("UPLOADS_DIR", "data/uploads")
    max_upload_mb: int = int(os.getenv("MAX_UPLOAD_MB", "50"))

    # Capsules
    capsule_placeholder_url: str = os.getenv("CAPSULE_PLACEHOLDER_URL", "/assets/capsule-placeholder.jpg")
    require_future_unsealing: bool = _flag("REQUIRE_FUTURE_UNSEALING", "1")

    # Comma-separated list: "http://localhost:3000,http://localhost:5173"
    cors_origins_csv: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins_csv.split(",") if o.strip()]

    @property
    def s3_configured(self) -> bool:
        return bool(self.s3_bucket and self.aws_access_key_id and self.aws_secret_access_key)

@lru_cache
def get_settings() -> Settings:
    return Settings()
