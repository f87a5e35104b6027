# vision_avatar/services/simulated_oracle.py
"""In-process stand-in for the recognition services"""
import logging
from collections import deque
from typing import Deque, Dict, List, Optional

import numpy as np

from .oracle import (
    EmotionAttention,
    FaceOracle,
    LivenessVerdict,
    RecognitionResult,
    ResultSource,
    check_threshold,
)
from ..utils.config import OracleConfig
from ..utils.state import Demographics

logger = logging.getLogger(__name__)

EMOTIONS = ("happy", "neutral", "surprised", "sad", "confused")


class SimulatedFaceOracle(FaceOracle):
    """
    Probabilistic recognition model used when no API key is configured.

    Each collection keeps a small rolling window of identities it has indexed.
    A lookup against an empty collection always indexes; otherwise it matches
    one of the held identities with match_probability and indexes a fresh one
    the rest of the time. The window is FIFO: the oldest id is evicted once
    capacity is exceeded. Results are plausible, not biometric.
    """

    def __init__(
        self,
        match_probability: float = 0.7,
        capacity: int = 5,
        similarity_range: tuple = (0.75, 0.95),
        live_probability: float = 0.95,
        seed: Optional[int] = None
    ):
        if not 0.0 <= match_probability <= 1.0:
            raise ValueError("match_probability must be within 0-1")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.match_probability = match_probability
        self.capacity = capacity
        self.similarity_range = similarity_range
        self.live_probability = live_probability
        self._rng = np.random.default_rng(seed)
        self._collections: Dict[str, Deque[str]] = {}
        self._counter = 0

    @classmethod
    def from_config(cls, config: OracleConfig) -> "SimulatedFaceOracle":
        return cls(
            match_probability=config.match_probability,
            capacity=config.collection_capacity,
            similarity_range=(config.similarity_min, config.similarity_max),
            live_probability=config.live_probability,
            seed=config.seed,
        )

    def _collection(self, collection_id: str) -> Deque[str]:
        if collection_id not in self._collections:
            self._collections[collection_id] = deque()
        return self._collections[collection_id]

    def held_identities(self, collection_id: str) -> List[str]:
        """Identities currently held for a collection, oldest first"""
        return list(self._collections.get(collection_id, ()))

    def reset(self):
        self._collections.clear()

    def _new_identity(self) -> str:
        self._counter += 1
        return f"sim_face_{self._counter:05d}_{int(self._rng.integers(0, 2**32)):08x}"

    def _uniform(self, low: float, high: float) -> float:
        return float(self._rng.uniform(low, high))

    async def create_collection(self, collection_id: str, description: str = "") -> bool:
        self._collection(collection_id)
        return True

    async def search_or_index(
        self,
        frame: bytes,
        collection_id: str,
        match_threshold: float = 70.0
    ) -> Optional[RecognitionResult]:
        check_threshold(match_threshold)
        held = self._collection(collection_id)

        if held and self._rng.random() < self.match_probability:
            identity_id = held[int(self._rng.integers(0, len(held)))]
            return RecognitionResult(
                result_source=ResultSource.MATCHED,
                identity_id=identity_id,
                similarity=self._uniform(*self.similarity_range),
            )

        identity_id = self._new_identity()
        held.append(identity_id)
        while len(held) > self.capacity:
            evicted = held.popleft()
            logger.debug(f"Evicted {evicted} from simulated collection {collection_id}")
        return RecognitionResult(
            result_source=ResultSource.INDEXED,
            identity_id=identity_id,
            similarity=0.0,
        )

    async def estimate_demographics(self, frame: bytes) -> Optional[Demographics]:
        age = float(int(self._uniform(25, 45)))
        uncertainty = float(int(self._uniform(3, 8)))
        return Demographics(
            age_estimate=age,
            age_min=max(0.0, age - uncertainty),
            age_max=age + uncertainty,
            gender_value=str(self._rng.choice(["Male", "Female"])),
            gender_confidence=1.0,
        )

    async def detect_emotion_attention(self, frame: bytes) -> Optional[EmotionAttention]:
        dominant = str(self._rng.choice(EMOTIONS))
        scores = {}
        for emotion in EMOTIONS:
            if emotion == dominant:
                scores[emotion] = self._uniform(0.6, 0.9)
            else:
                scores[emotion] = self._uniform(0.05, 0.3)
        return EmotionAttention(
            scores=scores,
            has_face=True,
            presence=True,
            eyes_on_screen=self._rng.random() > 0.3,
            attention=self._rng.random() > 0.4,
        )

    async def check_liveness(self, video: bytes, duration_ms: int) -> LivenessVerdict:
        is_live = bool(self._rng.random() < self.live_probability)
        confidence = self._uniform(0.85, 0.99) if is_live else self._uniform(0.2, 0.5)
        return LivenessVerdict(is_live=is_live, confidence=confidence)
