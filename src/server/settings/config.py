import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

# Projektrot (mappen som innehåller src/)
ROOT = Path(__file__).resolve().parents[3]


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


class CompanySettings(BaseModel):
    name: str = os.getenv("COMPANY_NAME", "Web Nova Lab")
    short_name: str = os.getenv("COMPANY_SHORT_NAME", "WebNovaLab")
    tagline: str = os.getenv("COMPANY_TAGLINE", "Soluciones Web y Marketing Digital")
    email: str = os.getenv("COMPANY_EMAIL", "info.webnovalab@gmail.com")
    phone: str = os.getenv("COMPANY_PHONE", "+1 (809) 123-4567")


class Settings(BaseModel):
    app_name: str = "WebNova Lab - Cotizador"
    environment: str = os.getenv("ENVIRONMENT", "dev")
    debug: bool = os.getenv("DEBUG", "1") == "1"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "0") == "1"

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./webnova.db")
    state_dir: str = os.getenv("STATE_DIR", str(ROOT / "knowledge" / "state"))
    recovery_debounce_seconds: float = _env_float("RECOVERY_DEBOUNCE_SECONDS", 0.5)
    module_catalog_path: str = os.getenv("MODULE_CATALOG_PATH", "")

    # AI-gateway (OpenAI-kompatibel, t.ex. Groq)
    ai_api_key: str = os.getenv("AI_API_KEY", "").strip()
    ai_base_url: str = os.getenv("AI_BASE_URL", "https://api.groq.com/openai/v1")
    ai_models: List[str] = Field(
        default_factory=lambda: _env_list(
            "AI_MODELS",
            "llama-3.3-70b-versatile,llama-3.1-70b-versatile,mixtral-8x7b-32768,"
            "llama-3.1-8b-instant,gemma2-9b-it",
        )
    )
    ai_timeout_seconds: float = _env_float("AI_TIMEOUT_SECONDS", 60.0)

    # Växelkurs USD -> DOP
    bank_rate_url: str = os.getenv("BANK_RATE_URL", "")
    default_usd_rate: float = _env_float("DEFAULT_USD_RATE", 60.50)
    exchange_rate_refresh_seconds: float = _env_float("EXCHANGE_RATE_REFRESH_SECONDS", 300.0)
    exchange_rate_timeout_seconds: float = _env_float("EXCHANGE_RATE_TIMEOUT_SECONDS", 10.0)

    # Tom nyckel = ingen kontroll (lokal utveckling)
    api_key: str = os.getenv("API_KEY", "").strip()

    cors_origins: List[str] = Field(
        default_factory=lambda: _env_list(
            "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080"
        )
    )

    company: CompanySettings = Field(default_factory=CompanySettings)


settings = Settings()
