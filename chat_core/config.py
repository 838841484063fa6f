import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

ENV = os.getenv("ENV")
ENV_IS_PROD = ENV == "prod"
COMMIT_HASH = os.getenv("COMMIT_HASH")
if not COMMIT_HASH and ENV_IS_PROD:
    raise ValueError("COMMIT_HASH is required for production environments")

APP_ADDR = os.getenv("HOST", "0.0.0.0")
APP_PORT = int(os.getenv("PORT", "8000"))

# Database
DATABASE_URL = os.getenv("DATABASE_URL")
SQL_DEBUG = os.getenv("SQL_DEBUG", "false").lower() == "true"
DB_AUTO_CREATE = os.getenv("DB_AUTO_CREATE", "false").lower() == "true"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "default")

# Participant directory (identity + friendship/block service)
DIRECTORY_SERVICE_URL = os.getenv("DIRECTORY_SERVICE_URL")
DIRECTORY_SERVICE_API_KEY = os.getenv("DIRECTORY_SERVICE_API_KEY", "")
DIRECTORY_CACHE_SIZE = int(os.getenv("DIRECTORY_CACHE_SIZE", "1000"))

# Real-time transport that fans events out to connected clients
EVENT_TRANSPORT_URL = os.getenv("EVENT_TRANSPORT_URL")
EVENT_TRANSPORT_API_KEY = os.getenv("EVENT_TRANSPORT_API_KEY", "")
# Events retained by the in-memory publisher when no transport is configured
EVENT_BUFFER_SIZE = int(os.getenv("EVENT_BUFFER_SIZE", "256"))

# Messaging limits
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "50"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "200"))
DIRECT_CREATE_ATTEMPTS = int(os.getenv("DIRECT_CREATE_ATTEMPTS", "3"))

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_URL_LENGTH = 500
MAX_CONTENT_LENGTH = 2000
MAX_EMOJI_LENGTH = 10
MAX_MEDIA_TYPE_LENGTH = 50
