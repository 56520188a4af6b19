from __future__ import annotations

import logging

HTTP_METHODS = {
    "get",
    "post",
    "patch",
    "delete",
}

LOGGER = logging.getLogger("lexgate.api")
APP_VERSION = "0.1.0"

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_DATA_KEY = "user_data"

REFRESH_PATH = "/auth/refresh"

DEV_API_BASE_URL = "http://localhost:3001/api/v1"
ANDROID_DEV_API_BASE_URL = "http://10.0.2.2:3001/api/v1"
PRODUCTION_API_BASE_URL = "https://your-production-api.com/api/v1"

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_SESSION_STORE_PATH = ".session.json"
