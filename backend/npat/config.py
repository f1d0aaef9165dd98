import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Socket.IO ("" = pick per platform)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Game
    COLLECTION_TIMEOUT_SEC = float(os.environ.get("COLLECTION_TIMEOUT_SEC", "10"))
    HOST_REELECTION = os.environ.get("HOST_REELECTION", "1") == "1"
    ENFORCE_HOST_ACTIONS = os.environ.get("ENFORCE_HOST_ACTIONS", "1") == "1"
    ROOM_CODE_LENGTH = int(os.environ.get("ROOM_CODE_LENGTH", "4"))
