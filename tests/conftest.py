# tests/conftest.py
"""Shared fixtures: deterministic clock, in-memory storage, scripted oracle"""

import os
import sys
from collections import deque
from typing import Deque, List, Optional, Union

import pytest

# Add the project root to the path so the package imports without installing
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vision_avatar.processors.event_emitter import EventEmitter
from vision_avatar.services.oracle import (
    EmotionAttention,
    FaceOracle,
    LivenessVerdict,
    RecognitionResult,
    ResultSource,
)
from vision_avatar.session.controller import SessionController
from vision_avatar.storage import BrowserIdentity, MemoryBackend, ProfileStore
from vision_avatar.utils.config import AnnouncementConfig
from vision_avatar.utils.state import Demographics


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def matched(identity_id: str, similarity: float = 0.9) -> RecognitionResult:
    return RecognitionResult(ResultSource.MATCHED, identity_id, similarity)


def indexed(identity_id: str) -> RecognitionResult:
    return RecognitionResult(ResultSource.INDEXED, identity_id, 0.0)


def demographics(age: float, gender: str = "Female") -> Demographics:
    return Demographics(age_estimate=age, age_min=age - 4, age_max=age + 4, gender_value=gender, gender_confidence=0.9)


Scripted = Union[RecognitionResult, None, Exception]


class ScriptedOracle(FaceOracle):
    """Plays back queued answers; an Exception in the queue is raised"""

    def __init__(self):
        self.recognitions: Deque[Scripted] = deque()
        self.demographics: Deque[Union[Demographics, None, Exception]] = deque()
        self.emotions: Deque[Union[EmotionAttention, None, Exception]] = deque()
        self.liveness: Deque[Union[LivenessVerdict, Exception]] = deque()
        self.created: List[str] = []
        self.searched: List[str] = []
        self.closed = False

    @staticmethod
    def _next(queue: deque, default=None):
        if not queue:
            return default
        value = queue.popleft()
        if isinstance(value, Exception):
            raise value
        return value

    async def create_collection(self, collection_id: str, description: str = "") -> bool:
        self.created.append(collection_id)
        return True

    async def search_or_index(self, frame: bytes, collection_id: str, match_threshold: float = 70.0) -> Optional[RecognitionResult]:
        self.searched.append(collection_id)
        return self._next(self.recognitions)

    async def estimate_demographics(self, frame: bytes) -> Optional[Demographics]:
        return self._next(self.demographics)

    async def detect_emotion_attention(self, frame: bytes) -> Optional[EmotionAttention]:
        return self._next(self.emotions)

    async def check_liveness(self, video: bytes, duration_ms: int) -> LivenessVerdict:
        return self._next(self.liveness, LivenessVerdict(is_live=True, confidence=0.9))

    async def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def profiles(backend):
    return ProfileStore(backend)


@pytest.fixture
def browser(backend, clock):
    return BrowserIdentity(backend, clock=clock)


@pytest.fixture
def emitter():
    return EventEmitter(buffer_size=100)


@pytest.fixture
def controller(profiles, browser, emitter, clock):
    return SessionController(profiles, browser, config=AnnouncementConfig(), emitter=emitter, clock=clock)


@pytest.fixture
def oracle():
    return ScriptedOracle()
