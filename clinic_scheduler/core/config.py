import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_scheduler.db")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Daily background generation over [today, today + DAYS_AHEAD)
APPOINTMENT_GENERATION_ENABLED = _get_bool(os.getenv("APPOINTMENT_GENERATION_ENABLED"), default=True)
APPOINTMENT_GENERATION_DAYS_AHEAD = int(os.getenv("APPOINTMENT_GENERATION_DAYS_AHEAD", "30"))
APPOINTMENT_GENERATION_INTERVAL_SECONDS = int(os.getenv("APPOINTMENT_GENERATION_INTERVAL_SECONDS", "86400"))
MAX_GENERATION_WINDOW_DAYS = int(os.getenv("MAX_GENERATION_WINDOW_DAYS", "366"))

REQUIRE_SERVICE_TARIFF = _get_bool(os.getenv("REQUIRE_SERVICE_TARIFF"), default=False)

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if APPOINTMENT_GENERATION_DAYS_AHEAD < 1:
        raise RuntimeError("APPOINTMENT_GENERATION_DAYS_AHEAD must be at least 1.")
    if APPOINTMENT_GENERATION_INTERVAL_SECONDS < 1:
        raise RuntimeError("APPOINTMENT_GENERATION_INTERVAL_SECONDS must be positive.")
