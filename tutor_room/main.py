import logging
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from tutor_room.config import LOG_LEVEL

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Ensure the project root is on sys.path so `from tutor_room.x import y`
# works when uvicorn is started from inside the package directory.
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

app = FastAPI(
    title="AI Tutor Room",
    description="Session orchestration core for voice-first language tutoring",
    version="0.1.0",
)

# CORS middleware: allow the UI dev server origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_class=PlainTextResponse)
async def health_check():
    """Health check endpoint."""
    return "OK"


# Mount route routers, logging warnings if any fail to import so
# missing routes are immediately visible in the server logs.
def _mount_routes() -> None:
    try:
        from tutor_room.routes.session import router as session_router
        app.include_router(session_router)
    except Exception as exc:
        logger.warning("Failed to mount session routes: %s", exc)

    try:
        from tutor_room.routes.conversation import router as conversation_router
        app.include_router(conversation_router)
    except Exception as exc:
        logger.warning("Failed to mount conversation routes: %s", exc)


_mount_routes()
