import os
from dataclasses import dataclass

from dotenv import load_dotenv


TEXT_MODELS = [
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-3-flash-preview",
    "gemini-2.0-flash",
]

IMAGE_MODELS = [
    "gemini-3.1-flash-image-preview",
    "gemini-2.5-flash-image",
]


@dataclass
class Settings:
    api_key: str = ""
    text_model: str = TEXT_MODELS[0]
    image_model: str = IMAGE_MODELS[0]
    timeout_ms: int = 300_000
    max_workers: int = 4
    port: int = 5001

    @classmethod
    def from_env(cls):
        """Read settings from the process environment, loading `.env` first."""
        load_dotenv()
        return cls(
            api_key=os.environ.get("GEMINI_API_KEY", "").strip(),
            text_model=os.environ.get("PIN_TEXT_MODEL", TEXT_MODELS[0]),
            image_model=os.environ.get("PIN_IMAGE_MODEL", IMAGE_MODELS[0]),
            timeout_ms=int(os.environ.get("PIN_TIMEOUT_MS", "300000")),
            max_workers=int(os.environ.get("PIN_MAX_WORKERS", "4")),
            port=int(os.environ.get("PORT", "5001")),
        )
