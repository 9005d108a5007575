import os


class Config:
    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Admin view of the live match (disabled when empty)
    ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Network
    HOST = os.environ.get("HOST", "0.0.0.0")
    PORT = int(os.environ.get("PORT", "12345"))
    HTTP_PORT = int(os.environ.get("HTTP_PORT", "5000"))

    # Lobby
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "3"))
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "10"))
    COUNTDOWN_SEC = int(os.environ.get("COUNTDOWN_SEC", "15"))

    # Game
    WORDS_FILE = os.environ.get("WORDS_FILE", "")
    ROUND_DURATION_SEC = int(os.environ.get("ROUND_DURATION_SEC", "60"))
    WORD_CHOICES_COUNT = int(os.environ.get("WORD_CHOICES_COUNT", "2"))
    CHOOSE_DURATION_SEC = int(os.environ.get("CHOOSE_DURATION_SEC", "30"))
    ROUND_END_PAUSE_SEC = float(os.environ.get("ROUND_END_PAUSE_SEC", "3"))
    DRAWS_PER_PLAYER = int(os.environ.get("DRAWS_PER_PLAYER", "3"))
    LOW_TIME_WARNING_SEC = int(os.environ.get("LOW_TIME_WARNING_SEC", "10"))
    TICK_INTERVAL_SEC = float(os.environ.get("TICK_INTERVAL_SEC", "1"))
