"""Game-local configuration constants and environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

GAME_DIR = Path(__file__).parent
HOST = os.environ.get("HOST", "0.0.0.0").strip()
PORT = int(os.environ.get("PORT", "3001"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://localhost:5174").split(",")
    if origin.strip()
]

CHAT_COMPLETION_BASE_URL = os.environ.get("CHAT_COMPLETION_BASE_URL", "https://janitorai.com/hackathon").rstrip("/")
CHAT_COMPLETION_API_KEY = os.environ.get("CHAT_COMPLETION_API_KEY", "").strip()
CHAT_COMPLETION_MODEL = os.environ.get("CHAT_COMPLETION_MODEL", "jllm").strip()
CHAT_TEMPERATURE = float(os.environ.get("CHAT_TEMPERATURE", "0.8"))
CHAT_MAX_TOKENS = int(os.environ.get("CHAT_MAX_TOKENS", "200"))
CHAT_TIMEOUT_SECONDS = float(os.environ.get("CHAT_TIMEOUT_SECONDS", "30"))

NPC_DEBOUNCE_SECONDS = float(os.environ.get("NPC_DEBOUNCE_SECONDS", "3.0"))
NPC_HISTORY_LIMIT = int(os.environ.get("NPC_HISTORY_LIMIT", "20"))
ROOM_CAPACITY = int(os.environ.get("ROOM_CAPACITY", "4"))
PURSUIT_TICK_SECONDS = float(os.environ.get("PURSUIT_TICK_SECONDS", "0.1"))
COLLISIONS_PATH = Path(os.environ.get("COLLISIONS_PATH", str(GAME_DIR / "data" / "collisions.json")))
