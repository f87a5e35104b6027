# vision_avatar/session/__init__.py
"""Session identity, announcements and voice commands"""

from .commands import Command, Intent, VoiceCommandInterpreter
from .cooldown import AnnouncementCooldownState, CooldownScheduler
from .controller import SessionController, TickObservation, TickOutcome
from .events import SessionEvent
from .monitor import FrameSource, StaticFrameSource, VisionMonitor

__all__ = [
    "Command",
    "Intent",
    "VoiceCommandInterpreter",
    "AnnouncementCooldownState",
    "CooldownScheduler",
    "SessionController",
    "TickObservation",
    "TickOutcome",
    "SessionEvent",
    "FrameSource",
    "StaticFrameSource",
    "VisionMonitor",
]
