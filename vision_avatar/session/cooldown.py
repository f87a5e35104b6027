# vision_avatar/session/cooldown.py
"""Minimum spacing between identity announcements"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class AnnouncementCooldownState:
    last_announced_at: Optional[float] = None
    last_announced_name: Optional[str] = None


class CooldownScheduler:
    """
    Tracks when the last state-changing announcement went out.

    Callers check ready() and call mark() while holding the controller lock,
    so the decision and the timestamp update cannot be split by another tick.
    """

    def __init__(self):
        self.state = AnnouncementCooldownState()

    @property
    def last_announced_name(self) -> Optional[str]:
        return self.state.last_announced_name

    def elapsed(self, now: float) -> Optional[float]:
        """Seconds since the last announcement, None if there was none"""
        if self.state.last_announced_at is None:
            return None
        return now - self.state.last_announced_at

    def ready(self, interval: float, now: float) -> bool:
        elapsed = self.elapsed(now)
        return elapsed is None or elapsed >= interval

    def mark(self, name: Optional[str], now: float):
        self.state = AnnouncementCooldownState(last_announced_at=now, last_announced_name=name)

    def reset(self):
        self.state = AnnouncementCooldownState()
