import os
from dotenv import load_dotenv

load_dotenv()

class Config:

    # AI gateway (OpenAI-compatible chat completions endpoint)
    AI_GATEWAY_URL = os.getenv("AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1")
    AI_GATEWAY_API_KEY = os.getenv("AI_GATEWAY_API_KEY") or os.getenv("LOVABLE_API_KEY")
    AI_CHAT_MODEL = os.getenv("AI_CHAT_MODEL", "google/gemini-2.5-flash")
    AI_STRUCTURE_MODEL = os.getenv("AI_STRUCTURE_MODEL", "google/gemini-2.5-flash-lite")
    AI_TIMEOUT = float(os.getenv("AI_TIMEOUT", "60"))

    # Text handed to the structuring model is truncated to this many characters
    STRUCTURE_INPUT_CHARS = int(os.getenv("STRUCTURE_INPUT_CHARS", "8000"))
    STRUCTURE_MIN_CHARS = 30
    PROCESSED_MIN_CHARS = 20
    CHAT_HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", "20"))
    # Seconds a /tools/calculate evaluation may run before it is reported as an error
    CALC_TIMEOUT = float(os.getenv("CALC_TIMEOUT", "2"))

    DEBUG = os.getenv("DEBUG", "False").lower() == "true"
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "8000"))

    MAX_CONTENT_LENGTH = 50 * 1024 * 1024
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
    ALLOWED_EXTENSIONS = {'.pdf', '.doc', '.docx', '.ppt', '.pptx'}
    ACCEPTED_TYPES = {
        "application/pdf": ".pdf",
        "application/msword": ".doc",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
        "application/vnd.ms-powerpoint": ".ppt",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
    }

    # Redis + Celery
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    CELERY_ENABLED = os.getenv("CELERY_ENABLED", "false").lower() == "true"

    # slowapi
    RATELIMIT_ENABLED = os.getenv("RATELIMIT_ENABLED", "true").lower() == "true"

    # AWS S3 (optional note storage)
    AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID")
    AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
    AWS_S3_BUCKET = os.getenv("AWS_S3_BUCKET")
    AWS_S3_REGION = os.getenv("AWS_S3_REGION", "us-east-1")
    S3_ENABLED = os.getenv("S3_ENABLED", "false").lower() == "true"

    CORS_ORIGINS = [
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON = os.getenv("LOG_JSON", "false").lower() == "true"

    @classmethod
    def validate(cls):
        import logging as _logging
        _log = _logging.getLogger(__name__)
        if not cls.AI_GATEWAY_API_KEY:
            _log.warning(
                "AI_GATEWAY_API_KEY is not set. Notes will be stored unstructured "
                "and the math tutor will not answer."
            )
        if cls.S3_ENABLED and not cls.AWS_S3_BUCKET:
            _log.warning("S3_ENABLED is true but AWS_S3_BUCKET is empty; falling back to local storage.")
        return True

    @classmethod
    def get_cors_origins(cls):
        cors_origins = os.getenv("CORS_ORIGINS")
        if cors_origins:
            return [origin.strip() for origin in cors_origins.split(",")]
        return cls.CORS_ORIGINS
