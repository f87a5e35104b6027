# vision_avatar/__init__.py
"""
Vision Avatar - session identity and announcements for a conversational avatar
"""

__version__ = "0.1.0"

from .processors.event_emitter import EventEmitter
from .services import FaceOracle, RemoteFaceOracle, SimulatedFaceOracle, create_oracle
from .session import SessionController, VisionMonitor, VoiceCommandInterpreter
from .storage import BrowserIdentity, ProfileStore
from .utils.config import VisionAvatarConfig
from .utils.state import SessionIdentity

__all__ = [
    "EventEmitter",
    "FaceOracle",
    "RemoteFaceOracle",
    "SimulatedFaceOracle",
    "create_oracle",
    "SessionController",
    "VisionMonitor",
    "VoiceCommandInterpreter",
    "BrowserIdentity",
    "ProfileStore",
    "VisionAvatarConfig",
    "SessionIdentity",
]
