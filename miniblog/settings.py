"""
This module contains the default configuration settings for the Miniblog application.
It defines paths, server settings, authentication defaults and the content-type
table used when serving post attachments.
Values can be overridden through a `.env` file, environment variables, or the
JSON app-settings file loaded by `miniblog.config`.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't')


#* --- Core Paths ---
PACKAGE_DIR = pathlib.Path(__file__).resolve().parent
BASE_DIR = PACKAGE_DIR.parent  # Project Root
DATA_DIR = pathlib.Path(os.getenv("MINIBLOG_DATA_DIR", BASE_DIR / "data"))
STATIC_DIR = PACKAGE_DIR / "web" / "static"

#* --- Application File Paths ---
POSTS_DIR = pathlib.Path(os.getenv("MINIBLOG_POSTS_DIR", DATA_DIR / "Posts"))
APPSETTINGS_PATH = pathlib.Path(os.getenv("MINIBLOG_APPSETTINGS", BASE_DIR / "appsettings.json"))

#* --- Hosting ---
# 'Development' turns on the debug error page; anything else is production.
ENVIRONMENT = os.getenv("MINIBLOG_ENVIRONMENT", "Production")
WEB_SERVER_HOST = os.getenv("MINIBLOG_HOST", "0.0.0.0")
WEB_SERVER_PORT = int(os.getenv("MINIBLOG_PORT", "9170"))
GRACEFUL_SHUTDOWN_TIMEOUT = 10  # seconds
FORCE_SSL = _env_flag("MINIBLOG_FORCESSL")

#* --- Routes ---
ERROR_ROUTE = "/Shared/Error"
OFFLINE_ROUTE = "/shared/offline/"
LOGIN_PATH = "/login/"
LOGOUT_PATH = "/logout/"
METAWEBLOG_PATH = "/metaweblog"
POSTS_REQUEST_PATH = "/Posts"
DEFAULT_ROUTE = "{controller=Blog}/{action=Index}/{id?}"

#* --- Security ---
SECRET_KEY = os.getenv("MINIBLOG_SECRET_KEY", "change-me-in-production")
SESSION_COOKIE_NAME = ".miniblog.auth"
SESSION_MAX_AGE = 14 * 24 * 3600  # 14 days
HSTS_MAX_AGE = 30 * 24 * 3600     # 30 days

#* --- User credentials (see 'miniblog hash-password') ---
USER_NAME = os.getenv("MINIBLOG_USER", "demo")
USER_PASSWORD_HASH = os.getenv("MINIBLOG_PASSWORD_HASH", "")
USER_SALT = os.getenv("MINIBLOG_SALT", "")
PASSWORD_HASH_ITERATIONS = 1000

#* --- Blog defaults (overridden by the 'blog' section) ---
BLOG = {
    "owner": "The Owner",
    "name": "Miniblog",
    "description": "A short description of the blog",
    "posts_per_page": 2,
    "comments_close_after_days": 10,
    "display_comments": True,
}

#* --- Output caching ---
OUTPUT_CACHE_PROFILES = {
    "default": 3600,  # seconds
}

#* --- Static assets ---
STATIC_CACHE_MAX_AGE = 365 * 24 * 3600  # 1 year
# Images referenced from compiled stylesheets up to this size are inlined.
INLINE_IMAGE_MAX_BYTES = 1

#* --- Post attachment content types ---
POSTS_CONTENT_TYPES = {
    ".application": "application/x-ms-application",
    ".manifest": "application/x-ms-manifest",
    ".deploy": "application/octet-stream",
    ".msp": "application/octet-stream",
    ".msu": "application/octet-stream",
    ".vsto": "application/x-ms-vsto",
    ".xaml": "application/xaml+xml",
    ".xbap": "application/x-ms-xbap",
    ".exe": "application/vnd.microsoft.portable-executable",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

#* --- Optional Services ---
# Grafana Loki (for observability)
LOKI_ENABLED = _env_flag("LOKI_ENABLED")
LOKI_URL = os.getenv("LOKI_URL", "http://localhost:3100")
LOKI_ORG_ID = os.getenv("LOKI_ORG_ID", "fake")
LOG_BUFFER_FLUSH_INTERVAL = 10

#* --- Keys the JSON app-settings file may set ---
MODIFIABLE_SETTINGS = {
    "FORCE_SSL", "BLOG", "USER_NAME", "USER_PASSWORD_HASH", "USER_SALT",
    "POSTS_DIR", "SECRET_KEY", "ENVIRONMENT", "OUTPUT_CACHE_PROFILES",
}
