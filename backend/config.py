import os
from dotenv import load_dotenv

load_dotenv()


def _split_origins(value: str):
    return [origin.strip() for origin in value.split(",") if origin.strip()]


class Settings:
    """Runtime settings, read from the environment (and .env) at import time."""

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./interview.db")

        self.secret_key = os.getenv("SECRET_KEY", "your-secret-key-change-in-production")
        self.jwt_algorithm = "HS256"
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))  # 8 hours

        self.ai_gateway_url = os.getenv("AI_GATEWAY_URL", "https://openrouter.ai/api/v1/chat/completions")
        self.ai_gateway_api_key = os.getenv("AI_GATEWAY_API_KEY") or os.getenv("OPENROUTER_API_KEY")
        self.ai_model = os.getenv("AI_MODEL", "google/gemini-2.5-flash")
        self.ai_temperature = float(os.getenv("AI_TEMPERATURE", "0.7"))
        self.ai_timeout_seconds = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))

        self.cors_origins = _split_origins(
            os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")
        )
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
