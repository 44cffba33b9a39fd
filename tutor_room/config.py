import os
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root (one level up from tutor_room/)
_env_path = Path(__file__).resolve().parent.parent / ".env"
# In pytest, keep config deterministic from env vars set by tests.
if "pytest" not in sys.modules:
    load_dotenv(_env_path)

# Mock Mode Toggle
# When True, the tutoring backend is replaced by pre-scripted payloads and the
# microphone by a silent synthetic source (no network, no audio hardware)
MOCK_MODE = os.getenv("MOCK_MODE", "true").lower() in ("true", "1", "yes")

# Remote tutoring backend
TUTOR_API_URL = os.getenv("TUTOR_API_URL", "http://localhost:3000").rstrip("/")
TUTOR_API_TOKEN = os.getenv("TUTOR_API_TOKEN", "")

# Deadlines (seconds). Transcription and analysis calls get the extended one.
DEFAULT_TIMEOUT_S = float(os.getenv("DEFAULT_TIMEOUT_S", "10"))
EXTENDED_TIMEOUT_S = float(os.getenv("EXTENDED_TIMEOUT_S", "60"))

# Audio capture
MAX_AUDIO_BYTES = 1024 * 1024
RECORDING_SAMPLE_RATE = int(os.getenv("RECORDING_SAMPLE_RATE", "16000"))

# Language auto-switching
LANGUAGE_DEBOUNCE_S = float(os.getenv("LANGUAGE_DEBOUNCE_S", "1.0"))
LANGUAGE_CACHE_TTL_S = float(os.getenv("LANGUAGE_CACHE_TTL_S", "300"))
AUTO_SWITCH_UI = os.getenv("AUTO_SWITCH_UI", "true").lower() in ("true", "1", "yes")

# Playback
PLAYBACK_RETRY_DELAY_S = 0.1

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
