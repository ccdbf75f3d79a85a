import logging
import os

import streamlit as st

# --- CONSTANTS ---
APP_NAME = "ClassView Connect"
APP_VERSION = "1.0"
ALL_OPTION = "All"
NO_SCORE = "—"
NO_DATE = "N/A"
DEFAULT_TIMEOUT = 15

PAGE_SIZE_TABLE = 10
PAGE_SIZE_CARDS = 9
PAGE_SIZE_LEADERBOARD = 5

ROLE_PARENT = "PARENT"
ROLE_TEACHER = "TEACHER"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)

_logging_ready = False


# --- SECRETS / ENV ---
def _secret(section, key):
    """Reads st.secrets[section][key], treating a missing secrets file as absent."""
    try:
        if section not in st.secrets: return None
        return st.secrets[section].get(key)
    except (FileNotFoundError, KeyError, AttributeError):
        return None
    except Exception as e:
        # StreamlitSecretNotFoundError is not importable on every streamlit release
        if type(e).__name__ == "StreamlitSecretNotFoundError": return None
        raise


def get_api_base_url():
    url = _secret("api", "base_url") or os.environ.get("CLASSVIEW_API_BASE_URL")
    if not url: return None
    return str(url).rstrip("/")


def get_request_timeout():
    raw = _secret("api", "timeout") or os.environ.get("CLASSVIEW_API_TIMEOUT")
    if raw in (None, ""): return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid request timeout %r", raw)
        return DEFAULT_TIMEOUT


# --- LOGGING ---
def configure_logging(level=None):
    global _logging_ready
    if _logging_ready: return
    level = level or os.environ.get("CLASSVIEW_LOG_LEVEL", "INFO")
    logging.basicConfig(level=str(level).upper(), format=LOG_FORMAT)
    _logging_ready = True
