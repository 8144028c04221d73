import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskhub.db")

# Tokens are issued by the external auth provider; we only verify them.
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_BACKEND_URL = os.getenv("CELERY_BACKEND_URL", "redis://localhost:6379/0")

# "log" only writes the message to the log, "celery" hands it to the worker
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "log")
SMTP_SERVER = os.getenv("SMTP_SERVER", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER", "your_email@gmail.com")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "your_app_password")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_PER_PAGE = int(os.getenv("DEFAULT_PER_PAGE", 15))
MAX_PER_PAGE = int(os.getenv("MAX_PER_PAGE", 100))

SEED_ON_STARTUP = _env_bool("SEED_ON_STARTUP", True)
