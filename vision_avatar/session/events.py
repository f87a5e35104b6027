# vision_avatar/session/events.py
"""Conversation-facing events produced by the session controller"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

INITIAL_GREETING = "initial_greeting"
ANNOUNCEMENT = "announcement"
IDENTITY_ANSWER = "identity_answer"
IDENTITY_ERASED = "identity_erased"
NAME_LEARNED = "name_learned"
LIVENESS_UPDATED = "liveness_updated"
TICK_ERROR = "tick_error"

# Events whose text the avatar should say out loud
SPOKEN_EVENTS = frozenset({INITIAL_GREETING, ANNOUNCEMENT})


@dataclass
class SessionEvent:
    type: str
    at: float
    name: Optional[str] = None
    text: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def spoken(self) -> bool:
        return self.type in SPOKEN_EVENTS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "at": self.at,
            "name": self.name,
            "text": self.text,
            "details": self.details,
        }


def initial_greeting_text(name: Optional[str], avatar_name: str) -> str:
    if name:
        return f"Hey {name}! Welcome back. What would you like to talk about?"
    return (
        f"Hi there! I'm {avatar_name}, an AI avatar with vision capabilities. "
        f"I can see you and respond to your expressions. What's your name?"
    )


def announcement_text(name: Optional[str]) -> str:
    if name:
        return f"Oh, hi {name}! Nice to see you."
    return "Oh, hi there! I don't think we've met before."


def identity_answer_text(name: Optional[str]) -> str:
    if name:
        return f"Of course, you're {name}."
    return "I don't think we've met yet. What's your name?"
