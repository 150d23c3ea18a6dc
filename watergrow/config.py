import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///watergrow.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "dev")

    # comma separated, "*" allows everything (handy while testing)
    CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "*")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    HOST = os.getenv("HOST", "127.0.0.1")
    PORT = int(os.getenv("PORT", "5000"))


def cors_origins(value):
    """Turn the CORS_ALLOWED_ORIGINS setting into what Flask-SocketIO expects."""
    if value is None or value.strip() == "*":
        return "*"
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def prefs_path():
    default = Path.home() / ".watergrow" / "prefs.json"
    return Path(os.getenv("WATERGROW_PREFS_PATH", str(default)))
