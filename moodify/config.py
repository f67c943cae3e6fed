"""Environment configuration: Last.fm key, auth backend, database, CORS."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Project root = parent of the moodify package
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

# Last.fm (track source)
LASTFM_API_KEY = os.getenv("LASTFM_API_KEY", "")
LASTFM_API_URL = os.getenv("LASTFM_API_URL", "https://ws.audioscrobbler.com/2.0/")

# Managed auth/database service. When both are empty the local SQL store is used.
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")

MOODIFY_DATABASE_URL = os.getenv("MOODIFY_DATABASE_URL", "sqlite:///./moodify.db")

# Sign-up confirmation mails link back to <site>/login
SITE_URL = os.getenv("MOODIFY_SITE_URL", "http://127.0.0.1:5173").rstrip("/")
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://127.0.0.1:5173")

API_HOST = os.getenv("MOODIFY_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("MOODIFY_API_PORT", "8000"))
LOG_LEVEL = os.getenv("MOODIFY_LOG_LEVEL", "INFO").upper()


def use_managed_backend() -> bool:
    return bool(SUPABASE_URL and SUPABASE_ANON_KEY)


def signup_redirect_url() -> str:
    return f"{SITE_URL}/login"
