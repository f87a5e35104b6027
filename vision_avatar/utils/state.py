# vision_avatar/utils/state.py
"""Session identity state and profile records"""
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, replace
from enum import Enum
import time


PLACEHOLDER_NAME = "Unknown"


def is_real_name(name: Optional[str], placeholder: str = PLACEHOLDER_NAME) -> bool:
    """A name counts only if it is non-empty and not the placeholder"""
    if not name or not name.strip():
        return False
    return name.strip() != placeholder


class AttentionLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class Demographics:
    """Age and gender estimate for one frame"""
    age_estimate: float
    age_min: float
    age_max: float
    gender_value: str
    gender_confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "age": {
                "estimate": self.age_estimate,
                "min": self.age_min,
                "max": self.age_max,
            },
            "gender": {
                "value": self.gender_value,
                "confidence": self.gender_confidence,
            },
        }


@dataclass
class SessionIdentity:
    """
    The controller's current best understanding of who is in front of the camera.

    One instance per monitoring session. Only the SessionController mutates it;
    everyone else gets copies via snapshot().
    """
    identity_id: Optional[str] = None
    display_name: Optional[str] = None
    match_confidence: float = 0.0
    is_live: bool = True
    demographics: Optional[Demographics] = None
    emotion: Optional[str] = None
    attention_level: Optional[AttentionLevel] = None
    is_newly_indexed: bool = False
    last_updated_at: float = field(default_factory=time.time)

    def copy(self) -> "SessionIdentity":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "identity_id": self.identity_id,
            "display_name": self.display_name,
            "match_confidence": self.match_confidence,
            "is_live": self.is_live,
            "demographics": self.demographics.to_dict() if self.demographics else None,
            "emotion": self.emotion,
            "attention_level": self.attention_level.value if self.attention_level else None,
            "is_newly_indexed": self.is_newly_indexed,
            "last_updated_at": self.last_updated_at,
        }


@dataclass
class ProfileRecord:
    """Maps an oracle identity id to the name the user gave us"""
    id: str
    name: str = PLACEHOLDER_NAME
    first_seen_at: float = field(default_factory=time.time)
    last_seen_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "first_seen_at": self.first_seen_at,
            "last_seen_at": self.last_seen_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfileRecord":
        if not isinstance(data, dict):
            raise ValueError(f"profile entry is not an object: {data!r}")
        name = data.get("name")
        if name is not None and not isinstance(name, str):
            raise ValueError(f"profile name is not a string: {name!r}")

        # Older layouts used camelCase keys
        first_seen = data.get("first_seen_at", data.get("firstSeen"))
        last_seen = data.get("last_seen_at", data.get("lastSeen"))
        now = time.time()
        return cls(
            id=str(data["id"]),
            name=name or PLACEHOLDER_NAME,
            first_seen_at=float(first_seen) if first_seen is not None else now,
            last_seen_at=float(last_seen) if last_seen is not None else now,
        )
