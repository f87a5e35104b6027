# vision_avatar/processors/__init__.py
"""Vision Avatar processors module

SessionFrameProcessor pulls in pipecat and is imported from
vision_avatar.processors.session_frames directly.
"""

from .event_emitter import EventEmitter

__all__ = [
    'EventEmitter'
]
