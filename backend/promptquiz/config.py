import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Empty means: pick per platform in create_app()
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Room defaults and limits
    DEFAULT_TARGET_SCORE = int(os.environ.get("DEFAULT_TARGET_SCORE", "5"))
    DEFAULT_TIME_LIMIT_SEC = int(os.environ.get("DEFAULT_TIME_LIMIT_SEC", "90"))
    MAX_TARGET_SCORE = int(os.environ.get("MAX_TARGET_SCORE", "100"))
    MAX_TIME_LIMIT_SEC = int(os.environ.get("MAX_TIME_LIMIT_SEC", "600"))
    MAX_NAME_LENGTH = int(os.environ.get("MAX_NAME_LENGTH", "20"))
    MAX_HINT_LENGTH = int(os.environ.get("MAX_HINT_LENGTH", "200"))

    # Seconds between countdown ticks
    COUNTDOWN_TICK_SEC = float(os.environ.get("COUNTDOWN_TICK_SEC", "1.0"))

    # Image generation (mock images when no key is set)
    STABILITY_API_KEY = os.environ.get("STABILITY_API_KEY", "")
    STABILITY_API_URL = os.environ.get(
        "STABILITY_API_URL",
        "https://api.stability.ai/v2beta/stable-image/generate/core",
    )
    IMAGE_TIMEOUT_SEC = float(os.environ.get("IMAGE_TIMEOUT_SEC", "60"))
