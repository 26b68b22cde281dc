"""Configuration settings for the Nos limites backend."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from project root
project_root = Path(__file__).resolve().parent.parent.parent
env_path = project_root / ".env"
load_dotenv(env_path)
load_dotenv()  # Fallback: try loading from current working directory

APP_ENV = os.getenv("APP_ENV", "development").lower()
IS_DEVELOPMENT = APP_ENV == "development"

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{project_root / 'noslimites.db'}")

# JWT sessions
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# "database": sessions persisted and revocable on logout
# "stateless": signature + expiry only, keep the TTL short
SESSION_POLICY = os.getenv("SESSION_POLICY", "database").lower()
_default_session_ttl = 30 * 24 * 60 if SESSION_POLICY == "database" else 60
SESSION_TTL_MINUTES = int(os.getenv("SESSION_TTL_MINUTES", str(_default_session_ttl)))

# Device refresh tokens
DEVICE_TOKEN_SECRET = os.getenv("DEVICE_TOKEN_SECRET", JWT_SECRET)
DEVICE_TOKEN_EXPIRY_DAYS = int(os.getenv("DEVICE_TOKEN_EXPIRY_DAYS", "365"))
MAX_DEVICES_PER_USER = int(os.getenv("MAX_DEVICES_PER_USER", "10"))
DEFAULT_DEVICE_NAME = "Navigateur"

# Magic links
MAGIC_LINK_TTL_MINUTES = int(os.getenv("MAGIC_LINK_TTL_MINUTES", "15"))
MAGIC_LINK_MAX_PER_HOUR = int(os.getenv("MAGIC_LINK_MAX_PER_HOUR", "5"))
MAGIC_LINK_BASE_URL = os.getenv("MAGIC_LINK_BASE_URL", "")

# Email delivery
EMAIL_PROVIDER = os.getenv("EMAIL_PROVIDER", "console").lower()
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Nos limites <noreply@noslimites.app>")

# Frontend (comma-separated, first entry is used to build links)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
DEFAULT_FRONTEND_ORIGINS = [
    "http://localhost:5173",
    "https://nos-limites-app.vercel.app",
]

# Validation bounds
NOTE_MAX_LENGTH = int(os.getenv("NOTE_MAX_LENGTH", "500"))
DISPLAY_NAME_MAX_LENGTH = int(os.getenv("DISPLAY_NAME_MAX_LENGTH", "50"))
