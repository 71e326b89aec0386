import os
from dotenv import load_dotenv

load_dotenv()


def _bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./comics.db")
SQL_ECHO = _bool("SQL_ECHO")

# Two independent signing keys: end-user tokens vs admin tokens
JWT_SECRET = os.getenv("JWT_SECRET", "your-secret-key-change-in-production")
ADMIN_JWT_SECRET = os.getenv("ADMIN_JWT_SECRET", "your-admin-secret-key-change-in-production")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
USER_TOKEN_EXPIRE_MINUTES = int(os.getenv("USER_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))  # 7 days
ADMIN_TOKEN_EXPIRE_MINUTES = int(os.getenv("ADMIN_TOKEN_EXPIRE_MINUTES", str(12 * 60)))  # 12 hours

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

IMAGE_SERVER_URL = os.getenv("IMAGE_SERVER_URL", "http://localhost:3002").rstrip("/")
TIKTOK_IMAGE_BASE_URL = os.getenv(
    "TIKTOK_IMAGE_BASE_URL",
    "https://p16-oec-sg.ibyteimg.com/obj/tos-alisg-avt-0068",
)

# Image service
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024)))  # 10 MB
MAX_WIDTH = int(os.getenv("MAX_WIDTH", "1200"))
CONVERT_TO_WEBP = _bool("CONVERT_TO_WEBP")
WEBP_QUALITY = int(os.getenv("WEBP_QUALITY", "85"))
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "90"))
IMAGE_CACHE_MAX_AGE = int(os.getenv("IMAGE_CACHE_MAX_AGE", str(30 * 24 * 60 * 60)))  # 30 days

# Caches
CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", "300"))  # 5 minutes
VIEW_COOLDOWN_SECONDS = float(os.getenv("VIEW_COOLDOWN_SECONDS", "3600"))  # 1 hour

# Abuse protection
RATE_LIMIT_ENABLED = _bool("RATE_LIMIT_ENABLED", "true")
API_RATE_LIMIT = os.getenv("API_RATE_LIMIT", "500/15 minutes")
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "20/hour")
BLOCK_BOTS = _bool("BLOCK_BOTS", "true")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
