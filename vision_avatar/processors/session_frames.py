# vision_avatar/processors/session_frames.py
"""Pipecat glue between the voice pipeline and the session controller"""
import logging
from typing import Any, Dict, Optional

from pipecat.frames.frames import (
    BotStartedSpeakingFrame,
    BotStoppedSpeakingFrame,
    Frame,
    LLMFullResponseEndFrame,
    LLMFullResponseStartFrame,
    TranscriptionFrame,
    TTSSpeakFrame,
)
from pipecat.processors.frame_processor import FrameDirection, FrameProcessor

from .event_emitter import EventEmitter
from ..session.controller import SessionController
from ..session.events import SPOKEN_EVENTS

logger = logging.getLogger(__name__)


class SessionFrameProcessor(FrameProcessor):
    """
    Keeps the controller's speaking/thinking gates in sync with the bot,
    hands user transcriptions to the voice command path, and speaks greetings
    and announcements produced by the controller.
    """

    def __init__(
        self,
        controller: SessionController,
        event_emitter: Optional[EventEmitter] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        self._controller = controller
        self._event_emitter = event_emitter

        if self._event_emitter:
            for event_type in SPOKEN_EVENTS:
                self._event_emitter.subscribe(event_type, self._speak_event)

    async def process_frame(self, frame: Frame, direction: FrameDirection):
        await super().process_frame(frame, direction)

        if isinstance(frame, BotStartedSpeakingFrame):
            self._controller.set_speaking(True)
        elif isinstance(frame, BotStoppedSpeakingFrame):
            self._controller.set_speaking(False)
        elif isinstance(frame, LLMFullResponseStartFrame):
            self._controller.set_thinking(True)
        elif isinstance(frame, LLMFullResponseEndFrame):
            self._controller.set_thinking(False)
        elif isinstance(frame, TranscriptionFrame) and frame.text:
            command = await self._controller.handle_utterance(frame.text)
            logger.debug(f"Transcription '{frame.text}' -> {command.intent.value}")

        # Always pass the frame through
        await self.push_frame(frame, direction)

    async def _speak_event(self, event: Dict[str, Any]):
        text = (event.get("data") or {}).get("text")
        if text:
            await self.push_frame(TTSSpeakFrame(text))
