# vision_avatar/services/oracle.py
"""Face recognition oracle capability"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional
import asyncio
import logging

from ..utils.state import AttentionLevel, Demographics

logger = logging.getLogger(__name__)

# Score keys in the emotion/attention payload that are flags, not emotions
EMOTION_FLAG_KEYS = frozenset({"hasFace", "presence", "eyesOnScreen", "attention"})


class OracleError(Exception):
    """Base class for oracle failures"""


class OracleTransportError(OracleError):
    """Network or HTTP failure talking to the recognition service"""


class OracleResponseError(OracleTransportError):
    """The service answered with a payload we could not parse"""


class ResultSource(str, Enum):
    MATCHED = "matched"
    INDEXED = "indexed"


@dataclass
class RecognitionResult:
    result_source: ResultSource
    identity_id: str
    similarity: float = 0.0

    @property
    def indexed(self) -> bool:
        return self.result_source == ResultSource.INDEXED


@dataclass
class EmotionAttention:
    scores: Dict[str, float] = field(default_factory=dict)
    has_face: bool = False
    presence: bool = False
    eyes_on_screen: bool = False
    attention: bool = False

    @property
    def dominant(self) -> str:
        """Highest scoring emotion, flags excluded"""
        best_key, best_value = "neutral", 0.0
        for key, value in self.scores.items():
            if key in EMOTION_FLAG_KEYS:
                continue
            if value > best_value:
                best_key, best_value = key, value
        return best_key

    @property
    def derived_attention(self) -> float:
        if self.attention:
            return 1.0
        if self.eyes_on_screen:
            return 0.5
        return 0.0


@dataclass
class FrameAnalysis:
    """Demographic and emotion signals for a single frame"""
    demographics: Optional[Demographics] = None
    emotion: Optional[EmotionAttention] = None

    @property
    def attention_level(self) -> Optional[AttentionLevel]:
        if self.emotion is None:
            return None
        return attention_level(self.emotion.derived_attention)


@dataclass
class LivenessVerdict:
    is_live: bool
    confidence: float = 0.0


def attention_level(score: float) -> AttentionLevel:
    if score > 0.7:
        return AttentionLevel.HIGH
    if score > 0.4:
        return AttentionLevel.MEDIUM
    return AttentionLevel.LOW


def check_threshold(match_threshold: float):
    if not 0 <= match_threshold <= 100:
        raise ValueError(f"match_threshold must be within 0-100, got {match_threshold}")


class FaceOracle(ABC):
    """
    Recognition capability used by the session controller.

    Implementations raise OracleTransportError (or OracleResponseError) for
    failures and return None for expected absence such as "no face in frame".
    """

    @abstractmethod
    async def create_collection(self, collection_id: str, description: str = "") -> bool:
        """Create a collection; an existing collection counts as success"""

    @abstractmethod
    async def search_or_index(
        self,
        frame: bytes,
        collection_id: str,
        match_threshold: float = 70.0
    ) -> Optional[RecognitionResult]:
        """Match the face against the collection, indexing it if unmatched"""

    @abstractmethod
    async def estimate_demographics(self, frame: bytes) -> Optional[Demographics]:
        """Age and gender estimate for the primary face"""

    @abstractmethod
    async def detect_emotion_attention(self, frame: bytes) -> Optional[EmotionAttention]:
        """Emotion scores and attention flags for the primary face"""

    @abstractmethod
    async def check_liveness(self, video: bytes, duration_ms: int) -> LivenessVerdict:
        """Live-person verdict from a short video sample"""

    async def analyze(self, frame: bytes) -> FrameAnalysis:
        """Run the demographic and emotion queries for one frame in parallel"""
        demographics, emotion = await asyncio.gather(
            self.estimate_demographics(frame),
            self.detect_emotion_attention(frame),
        )
        return FrameAnalysis(demographics=demographics, emotion=emotion)

    async def close(self):
        """Release any held resources"""
        pass
