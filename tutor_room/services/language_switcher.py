"""
Language detection, translation and UI auto-switching.

Keystrokes are debounced (one detection per pause in typing), detections and
translations are memoized in a small TTL cache, and a detected Chinese
variant flips the UI language to ``zh`` while everything else maps to ``en``.
"""

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Hashable

from tutor_room.config import AUTO_SWITCH_UI, LANGUAGE_CACHE_TTL_S, LANGUAGE_DEBOUNCE_S
from tutor_room.errors import CollaboratorError
from tutor_room.models import LanguageDetectionResult, TranslationResult
from tutor_room.services.api_client import TutorApiClient, unwrap_data

logger = logging.getLogger(__name__)

MIN_DETECT_CHARS = 3
_CHINESE_CODES = ("cmn", "yue", "wuu")


def ui_language_for(language_code: str | None) -> str:
    """Map a detected language code onto a UI language (``zh`` or ``en``)."""
    code = (language_code or "").lower()
    if code.startswith("zh") or code in _CHINESE_CODES:
        return "zh"
    return "en"


class TTLCache:
    """Dict-like cache whose entries expire ``ttl`` seconds after being set."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, object]] = {}

    def get(self, key: Hashable):
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value):
        now = self._clock()
        expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at >= self._ttl]
        for k in expired:
            del self._entries[k]
        self._entries[key] = (now, value)

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)


class LanguageAutoSwitcher:
    """Detects the learner's language and keeps the UI language in step."""

    DETECT_PATH = "/api/language/detect"
    TRANSLATE_PATH = "/api/language/translate"

    def __init__(
        self,
        client: TutorApiClient,
        on_switch: Callable[[str], Awaitable[None] | None] | None = None,
        auto_switch_ui: bool = AUTO_SWITCH_UI,
        debounce_s: float = LANGUAGE_DEBOUNCE_S,
        cache_ttl_s: float = LANGUAGE_CACHE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self.on_switch = on_switch
        self.auto_switch_ui = auto_switch_ui
        self._debounce_s = debounce_s
        self._cache = TTLCache(cache_ttl_s, clock)
        self._pending: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self.ui_language = "en"
        self.last_detection: LanguageDetectionResult | None = None

    # ── Detection ────────────────────────────────────────────────────

    async def detect(self, text: str) -> LanguageDetectionResult | None:
        """Detect the language of ``text``. Returns None for short text or on failure."""
        text = (text or "").strip()
        if len(text) < MIN_DETECT_CHARS:
            return None

        key = ("auto", "detect", text)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            body = await self._client.post_json(self.DETECT_PATH, {"text": text})
        except CollaboratorError as exc:
            logger.warning("Language detection failed: %s", exc)
            return None

        data = unwrap_data(body)
        code = data.get("detectedLanguage")
        if not isinstance(code, str) or not code:
            logger.warning("Language detection returned no language")
            return None
        try:
            confidence = float(data.get("confidence") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0
        result = LanguageDetectionResult(
            detected_language=code,
            confidence=min(1.0, max(0.0, confidence)),
            language_name=data.get("languageName") or "",
            cultural_context=data.get("culturalContext") or "",
            is_supported=bool(data.get("isSupported", True)),
            fallback_used=bool(data.get("fallbackUsed", False)),
        )
        self._cache.set(key, result)
        logger.info("Detected language %s (%.2f)", result.detected_language, result.confidence)
        return result

    # ── Translation ──────────────────────────────────────────────────

    async def translate(self, text: str, target: str, source: str | None = None) -> TranslationResult:
        key = (source or "auto", target, text)
        cached = self._cache.get(key)
        if cached is not None:
            return TranslationResult(success=True, translated_text=cached)

        if source == target:
            return TranslationResult(success=True, translated_text=text)

        payload = {"text": text, "targetLanguage": target}
        if source:
            payload["sourceLanguage"] = source
        try:
            body = await self._client.post_json(self.TRANSLATE_PATH, payload)
        except CollaboratorError as exc:
            logger.error("Translation error: %s", exc)
            return TranslationResult(success=False, error=str(exc))

        translated = body.get("translatedText") or unwrap_data(body).get("translatedText")
        if not translated:
            return TranslationResult(success=False, error="Translation failed")
        self._cache.set(key, translated)
        return TranslationResult(success=True, translated_text=translated)

    def clear_cache(self):
        self._cache.clear()

    # ── Auto-switching ───────────────────────────────────────────────

    def on_input(self, text: str):
        """Debounced entry point for keystrokes: detect once typing pauses."""
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._debounced(text))

    def observe(self, text: str):
        """Detect ``text`` in the background without debouncing (e.g. a transcript)."""
        task = asyncio.get_running_loop().create_task(self.detect_and_switch(text))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _debounced(self, text: str):
        await asyncio.sleep(self._debounce_s)
        await self.detect_and_switch(text)

    async def detect_and_switch(self, text: str) -> str | None:
        result = await self.detect(text)
        if result is None:
            return None
        self.last_detection = result
        return await self.apply(result)

    async def apply(self, result: LanguageDetectionResult) -> str | None:
        """Switch the UI language if auto-switching is on and the language changed."""
        if not self.auto_switch_ui:
            return None
        target = ui_language_for(result.detected_language)
        if target == self.ui_language:
            return None
        logger.info("UI language %s → %s", self.ui_language, target)
        self.ui_language = target
        if self.on_switch is not None:
            outcome = self.on_switch(target)
            if inspect.isawaitable(outcome):
                await outcome
        return target

    def set_ui_language(self, language: str):
        self.ui_language = ui_language_for(language)

    async def flush(self):
        """Wait for any pending debounced or background detection."""
        tasks = [t for t in (self._pending, *self._background) if t is not None and not t.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def cancel(self):
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
