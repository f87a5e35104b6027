# vision_avatar/session/controller.py
"""
Session Identity & Announcement Controller

Fuses per-tick oracle results into one SessionIdentity and decides when the
avatar should greet or announce who it sees.
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional
import asyncio
import logging
import time

from .commands import Command, Intent, VoiceCommandInterpreter
from .cooldown import CooldownScheduler
from .events import (
    ANNOUNCEMENT,
    IDENTITY_ANSWER,
    IDENTITY_ERASED,
    INITIAL_GREETING,
    LIVENESS_UPDATED,
    NAME_LEARNED,
    TICK_ERROR,
    SessionEvent,
    announcement_text,
    identity_answer_text,
    initial_greeting_text,
)
from ..context.vision_prompt import build_system_prompt
from ..processors.event_emitter import EventEmitter
from ..services.oracle import FrameAnalysis, LivenessVerdict, RecognitionResult
from ..storage.browser_identity import BrowserIdentity
from ..storage.profiles import ProfileStore
from ..utils.config import AnnouncementConfig
from ..utils.state import ProfileRecord, SessionIdentity, is_real_name

logger = logging.getLogger(__name__)

# Announcement triggers
WENT_UNKNOWN_TO_RECOGNIZED = "went_unknown_to_recognized"
RECOGNIZED_AFTER_GENERIC_GREETING = "recognized_after_generic_greeting"
DEMOGRAPHICS_JUMPED = "demographics_jumped"


@dataclass
class TickObservation:
    """What the oracle said about one captured frame; None means no signal"""
    recognition: Optional[RecognitionResult] = None
    analysis: Optional[FrameAnalysis] = None


@dataclass
class TickOutcome:
    identity: SessionIdentity
    events: List[SessionEvent] = field(default_factory=list)
    discarded: bool = False


class SessionController:
    """
    Owns the SessionIdentity, the announcement cooldown and the one-shot
    greeting latch.

    Every mutation runs under a single asyncio.Lock and reads the state as it
    is at apply time, so ticks that complete out of order, voice commands and
    liveness updates never work from a stale snapshot, and two near-simultaneous
    ticks cannot both decide to announce. Events are published after the lock
    is released.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        browser: BrowserIdentity,
        config: Optional[AnnouncementConfig] = None,
        emitter: Optional[EventEmitter] = None,
        clock: Callable[[], float] = time.time,
        interpreter: Optional[VoiceCommandInterpreter] = None
    ):
        self.profiles = profiles
        self.browser = browser
        self.config = config or AnnouncementConfig()
        self.emitter = emitter
        self.clock = clock
        self.interpreter = interpreter or VoiceCommandInterpreter()

        self._lock = asyncio.Lock()
        self._identity = SessionIdentity(last_updated_at=clock())
        self._cooldown = CooldownScheduler()
        self._greeted = False
        self._greeted_with_name: Optional[str] = None
        self._monitoring = False

        # Set by the speech side; announcements wait while either is up
        self.speaking = False
        self.thinking = False

    # Session lifecycle

    @property
    def monitoring(self) -> bool:
        return self._monitoring

    @property
    def greeted(self) -> bool:
        return self._greeted

    @property
    def cooldown(self) -> CooldownScheduler:
        return self._cooldown

    async def start_monitoring(self):
        async with self._lock:
            self._monitoring = True
        logger.info("Monitoring started")

    async def stop_monitoring(self):
        async with self._lock:
            self._monitoring = False
        logger.info("Monitoring stopped")

    async def reset_session(self):
        """Tear the session down: fresh identity, cooldown and greeting latch"""
        async with self._lock:
            self._identity = SessionIdentity(last_updated_at=self.clock())
            self._cooldown.reset()
            self._greeted = False
            self._greeted_with_name = None
        logger.info("Session reset")

    def set_speaking(self, speaking: bool):
        self.speaking = speaking

    def set_thinking(self, thinking: bool):
        self.thinking = thinking

    def snapshot(self) -> SessionIdentity:
        """Copy of the current session identity"""
        return self._identity.copy()

    def vision_prompt(self) -> str:
        return build_system_prompt(self.snapshot(), self.config.avatar_name)

    def _real_name(self, name: Optional[str]) -> Optional[str]:
        return name if is_real_name(name, self.config.placeholder_name) else None

    # Frame ticks

    async def apply_tick(self, observation: TickObservation) -> TickOutcome:
        """Merge one tick's oracle signals into the session identity"""
        async with self._lock:
            if not self._monitoring:
                logger.debug("Discarding tick that completed after monitoring stopped")
                return TickOutcome(identity=self._identity.copy(), discarded=True)
            events = self._apply_tick(observation)
            snapshot = self._identity.copy()

        await self._publish(events)
        return TickOutcome(identity=snapshot, events=events)

    def _apply_tick(self, observation: TickObservation) -> List[SessionEvent]:
        now = self.clock()
        previous = self._identity
        recognition = observation.recognition
        analysis = observation.analysis or FrameAnalysis()
        events: List[SessionEvent] = []

        candidate_id = recognition.identity_id if recognition else previous.identity_id
        profile = self.profiles.get(candidate_id) if candidate_id else None
        profile_name = self._real_name(profile.name) if profile else None
        newly_indexed = bool(recognition and recognition.indexed)

        went_unknown_to_recognized = (
            previous.identity_id is None
            and candidate_id is not None
            and profile_name is not None
        )
        recognized_after_generic = (
            self._greeted
            and self._greeted_with_name is None
            and self._real_name(previous.display_name) is None
            and profile_name is not None
        )
        demographics = analysis.demographics
        demographics_jumped = (
            previous.demographics is not None
            and demographics is not None
            and abs(previous.demographics.age_estimate - demographics.age_estimate)
            > self.config.demographic_jump_years
        )
        greeting_pending = not self._greeted

        triggers = []
        if self._greeted and not self.speaking and not self.thinking:
            if self._cooldown.ready(self.config.recognition_cooldown, now):
                if went_unknown_to_recognized:
                    triggers.append(WENT_UNKNOWN_TO_RECOGNIZED)
                if demographics_jumped:
                    triggers.append(DEMOGRAPHICS_JUMPED)
            if recognized_after_generic and self._cooldown.ready(self.config.correction_cooldown, now):
                triggers.append(RECOGNIZED_AFTER_GENERIC_GREETING)

        if triggers:
            self._cooldown.mark(profile_name, now)
            self._greeted_with_name = profile_name
            if self.config.mark_speaking_on_announce:
                self.speaking = True
            logger.info(f"Announcing identity change: name={profile_name}, triggers={triggers}")
            events.append(SessionEvent(
                type=ANNOUNCEMENT,
                at=now,
                name=profile_name,
                text=announcement_text(profile_name),
                details={"triggers": triggers, "identity_id": candidate_id},
            ))

        # Never regress a real name to empty/placeholder
        display_name = profile_name or self._real_name(previous.display_name)

        if greeting_pending and self._monitoring:
            self._greeted = True
            self._greeted_with_name = display_name
            if self.config.mark_speaking_on_announce:
                self.speaking = True
            logger.info(f"Initial greeting, name={display_name}")
            events.append(SessionEvent(
                type=INITIAL_GREETING,
                at=now,
                name=display_name,
                text=initial_greeting_text(display_name, self.config.avatar_name),
                details={"identity_id": candidate_id},
            ))

        if recognition is not None:
            self._persist(recognition, profile, now)

        self._identity = SessionIdentity(
            identity_id=candidate_id,
            display_name=display_name,
            match_confidence=recognition.similarity if recognition else previous.match_confidence,
            is_live=previous.is_live,
            demographics=demographics or previous.demographics,
            emotion=analysis.emotion.dominant if analysis.emotion else previous.emotion,
            attention_level=analysis.attention_level or previous.attention_level,
            is_newly_indexed=newly_indexed,
            last_updated_at=now,
        )
        return events

    def _persist(self, recognition: RecognitionResult, profile: Optional[ProfileRecord], now: float):
        if profile is not None:
            self.profiles.touch(profile.id, now)
            return
        if not recognition.indexed:
            return
        name = self.browser.default_name or self.config.placeholder_name
        self.profiles.upsert(ProfileRecord(
            id=recognition.identity_id,
            name=name,
            first_seen_at=now,
            last_seen_at=now,
        ))
        logger.info(f"Saved new profile: {recognition.identity_id} with name: {name}")

    # Liveness

    async def apply_liveness(self, verdict: Optional[LivenessVerdict]) -> SessionIdentity:
        """Record a liveness verdict; no verdict means live (fail-open)"""
        async with self._lock:
            if not self._monitoring:
                return self._identity.copy()
            is_live = verdict.is_live if verdict is not None else True
            if not is_live:
                logger.warning("Liveness check failed - might be a photo or video")
            self._identity.is_live = is_live
            snapshot = self._identity.copy()
            event = SessionEvent(
                type=LIVENESS_UPDATED,
                at=self.clock(),
                details={
                    "is_live": is_live,
                    "confidence": verdict.confidence if verdict is not None else None,
                },
            )

        await self._publish([event])
        return snapshot

    async def report_error(self, stage: str, error: Exception):
        """Surface a per-tick oracle failure to listeners"""
        await self._publish([SessionEvent(
            type=TICK_ERROR,
            at=self.clock(),
            details={"stage": stage, "error": str(error)},
        )])

    # Voice commands

    async def handle_utterance(self, utterance: str) -> Command:
        """Run the identity-related part of a user utterance"""
        command = self.interpreter.classify(utterance)
        if command.intent == Intent.ERASE_ME:
            await self.erase_me()
        elif command.intent == Intent.SELF_INTRODUCTION and command.name:
            await self.introduce(command.name)
        elif command.intent == Intent.IDENTITY_QUESTION:
            await self.answer_identity_question()
        return command

    async def introduce(self, name: str):
        """
        Learn the user's name.

        The name becomes the browser default for every future new identity,
        is written to every profile still lacking a real name, and is set on
        the current identity's profile.
        """
        async with self._lock:
            now = self.clock()
            self.browser.set_default_name(name)
            renamed = self.profiles.name_placeholders(name)

            identity_id = self._identity.identity_id
            if identity_id:
                profile = self.profiles.get(identity_id)
                if profile is None:
                    profile = ProfileRecord(id=identity_id, name=name, first_seen_at=now, last_seen_at=now)
                else:
                    profile.name = name
                    profile.last_seen_at = now
                self.profiles.upsert(profile)

            self._identity.display_name = name
            event = SessionEvent(
                type=NAME_LEARNED,
                at=now,
                name=name,
                details={"identity_id": identity_id, "renamed": renamed},
            )

        logger.info(f"User introduced themselves: {name} ({len(renamed)} profiles updated)")
        await self._publish([event])

    async def erase_me(self):
        """
        Forget the current user: delete their profile, clear the browser
        default name and collection id, and unset the session identity.
        Safe to call repeatedly.
        """
        async with self._lock:
            identity_id = self._identity.identity_id
            deleted = self.profiles.delete(identity_id) if identity_id else False
            self.browser.reset()

            self._identity.identity_id = None
            self._identity.display_name = None
            self._identity.match_confidence = 0.0
            self._identity.is_newly_indexed = False
            self._identity.last_updated_at = self.clock()
            event = SessionEvent(
                type=IDENTITY_ERASED,
                at=self._identity.last_updated_at,
                details={"identity_id": identity_id, "profile_deleted": deleted},
            )

        logger.info(f"Erased identity {identity_id} (profile deleted: {deleted})")
        await self._publish([event])

    async def answer_identity_question(self) -> SessionEvent:
        async with self._lock:
            name = self._real_name(self._identity.display_name)
            event = SessionEvent(
                type=IDENTITY_ANSWER,
                at=self.clock(),
                name=name,
                text=identity_answer_text(name),
                details={"identity_id": self._identity.identity_id, "known": name is not None},
            )

        await self._publish([event])
        return event

    async def _publish(self, events: List[SessionEvent]):
        if not self.emitter:
            return
        for event in events:
            await self.emitter.emit(event.type, event.to_dict())
