"""
Learning-mode detection from free-form tutor replies.

Rules are tested in list order and the first group with any keyword present
wins, so text that mentions both speaking and reading always resolves to
speaking. Matching is substring based on the lower-cased text.
"""

from dataclasses import dataclass

from tutor_room.models import Mode


@dataclass(frozen=True)
class ModeRule:
    mode: Mode
    keywords: tuple[str, ...]

    def matches(self, lowered: str) -> bool:
        return any(keyword in lowered for keyword in self.keywords)


MODE_RULES: tuple[ModeRule, ...] = (
    ModeRule(Mode.SPEAKING, ("speak", "pronunciation", "say")),
    ModeRule(Mode.READING, ("read", "passage", "text")),
    ModeRule(Mode.WRITING, ("write", "grammar", "email")),
    ModeRule(Mode.LISTENING, ("listen", "audio", "hear")),
)


def detect_mode(text, rules: tuple[ModeRule, ...] = MODE_RULES) -> Mode:
    """Return the first matching mode for ``text``, or ``Mode.NONE``."""
    if not isinstance(text, str) or not text.strip():
        return Mode.NONE
    lowered = text.lower()
    for rule in rules:
        if rule.matches(lowered):
            return rule.mode
    return Mode.NONE
