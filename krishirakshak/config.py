# krishirakshak/config.py
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
MODELS_DIR = ROOT / "models"

DEFAULT_MODEL_PATH = MODELS_DIR / "krishi_model.h5"
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://localhost:8501")

load_dotenv()


def _split_origins(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return DEFAULT_CORS_ORIGINS
    return tuple(o.strip() for o in raw.split(",") if o.strip())


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    port: int = 8000
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    backend_url: Optional[str] = None
    model_path: Path = DEFAULT_MODEL_PATH
    request_timeout: float = 60.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            gemini_api_key=env.get("GEMINI_API_KEY") or None,
            gemini_model=env.get("GEMINI_MODEL", "gemini-1.5-flash"),
            port=int(env.get("PORT", 8000)),
            cors_origins=_split_origins(env.get("CORS_ORIGINS")),
            backend_url=(env.get("KRISHI_BACKEND_URL") or "").rstrip("/") or None,
            model_path=Path(env.get("KRISHI_MODEL_PATH", DEFAULT_MODEL_PATH)),
            request_timeout=float(env.get("KRISHI_REQUEST_TIMEOUT", 60)),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
