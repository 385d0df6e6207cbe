"""
Runtime configuration for the CanvasAI backend.

Values come from the environment (optionally a .env file next to the
process). Config objects are plain classes with class attributes so they
can be patched in tests.
"""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class GenerationConfig:
    """Settings for the external generation providers."""

    # fal.ai queue API
    FAL_KEY: Optional[str] = os.getenv("FAL_KEY")
    FAL_QUEUE_URL: str = os.getenv("FAL_QUEUE_URL", "https://queue.fal.run").rstrip("/")
    FAL_POLL_INTERVAL_SECONDS: float = _env_float("FAL_POLL_INTERVAL_SECONDS", 1.0)
    FAL_TIMEOUT_SECONDS: float = _env_float("FAL_TIMEOUT_SECONDS", 600.0)

    # Gemini native image generation
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GEMINI_IMAGE_MODEL: str = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")

    # 3D generation is simulated until the Rodin integration is switched on
    SIMULATE_3D: bool = _env_bool("CANVASAI_SIMULATE_3D", True)
    SIMULATED_3D_DELAY_SECONDS: float = _env_float("CANVASAI_SIMULATED_3D_DELAY_SECONDS", 2.0)

    @classmethod
    def get_fal_key(cls) -> str:
        """
        Get the fal.ai API key.

        Raises:
            ValueError: If FAL_KEY is not set
        """
        if not cls.FAL_KEY:
            raise ValueError(
                "FAL_KEY not found. "
                "Please set it in your environment or .env file."
            )
        return cls.FAL_KEY

    @classmethod
    def get_gemini_key(cls) -> str:
        if not cls.GEMINI_API_KEY:
            raise ValueError(
                "GEMINI_API_KEY not found. "
                "Please set it in your environment or .env file."
            )
        return cls.GEMINI_API_KEY


class ExecutionConfig:
    """Settings for workflow runs and execution history."""

    SUPABASE_URL: Optional[str] = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    # Allow localhost dev servers by default
    CORS_ORIGIN_REGEX: str = os.getenv(
        "CANVASAI_CORS_ORIGIN_REGEX",
        r"^http:\/\/localhost:\d+$|^http:\/\/127\.0\.0\.1:\d+$",
    )

    @classmethod
    def persistence_enabled(cls) -> bool:
        """Execution history is only written when Supabase is configured."""
        return bool(cls.SUPABASE_URL and cls.SUPABASE_SERVICE_ROLE_KEY)
