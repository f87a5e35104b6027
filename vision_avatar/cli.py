# vision_avatar/cli.py
"""Command line entry points: a scripted simulation and the debug UI"""
from dataclasses import dataclass
from typing import Callable, List, Optional
import argparse
import asyncio
import json
import logging
import time

from dotenv import load_dotenv

from .processors.event_emitter import EventEmitter, WILDCARD
from .services import FaceOracle, create_oracle
from .session.controller import SessionController
from .session.monitor import FrameSource, StaticFrameSource, VisionMonitor
from .storage import BrowserIdentity, ProfileStore, create_backend
from .utils.config import VisionAvatarConfig

logger = logging.getLogger(__name__)


@dataclass
class VisionSession:
    """Everything one avatar session needs, wired together"""
    config: VisionAvatarConfig
    profiles: ProfileStore
    browser: BrowserIdentity
    emitter: EventEmitter
    controller: SessionController
    oracle: FaceOracle
    monitor: VisionMonitor

    async def close(self):
        await self.monitor.stop()
        await self.oracle.close()


def build_session(
    config: VisionAvatarConfig,
    frames: Optional[FrameSource] = None,
    oracle: Optional[FaceOracle] = None,
    clock: Callable[[], float] = time.time
) -> VisionSession:
    backend = create_backend(config.storage.backend, config.storage.directory)
    profiles = ProfileStore(backend, placeholder_name=config.announcements.placeholder_name)
    browser = BrowserIdentity(backend, clock=clock)
    emitter = EventEmitter(buffer_size=config.debug_ui.event_history)
    controller = SessionController(
        profiles,
        browser,
        config=config.announcements,
        emitter=emitter,
        clock=clock,
    )
    oracle = oracle or create_oracle(config.oracle)
    monitor = VisionMonitor(
        controller,
        oracle,
        frames or StaticFrameSource(),
        config=config.monitor,
        match_threshold=config.oracle.match_threshold,
        collection_description=config.oracle.collection_description,
    )

    if config.oracle.demo_mode:
        logger.warning("Running in demo mode with simulated face recognition")
    return VisionSession(
        config=config,
        profiles=profiles,
        browser=browser,
        emitter=emitter,
        controller=controller,
        oracle=oracle,
        monitor=monitor,
    )


class VirtualClock:
    """Clock advanced by hand so a short simulation can cross cooldowns"""

    def __init__(self, start: Optional[float] = None):
        self.now = start if start is not None else time.time()

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def _load_config(path: Optional[str]) -> VisionAvatarConfig:
    if path:
        return VisionAvatarConfig.from_file(path)
    return VisionAvatarConfig.from_env()


def _print_event(event: dict):
    print(json.dumps(event["data"], default=str))


async def run_simulation(
    config: VisionAvatarConfig,
    ticks: int,
    tick_seconds: float,
    utterances: List[str],
    say_after: int = 1
) -> VisionSession:
    """
    Run a fixed number of fast ticks against the configured oracle on a
    virtual clock, speaking the queued utterances after tick say_after.
    Playback is assumed to finish before the next tick.
    """
    clock = VirtualClock()
    session = build_session(config, clock=clock)
    session.emitter.subscribe(WILDCARD, _print_event)

    controller = session.controller
    await controller.start_monitoring()
    try:
        for tick in range(1, ticks + 1):
            await session.monitor.run_fast_tick()
            controller.set_speaking(False)
            if tick == say_after:
                for text in utterances:
                    command = await controller.handle_utterance(text)
                    logger.info(f"'{text}' -> {command.intent.value}")
            clock.advance(tick_seconds)
        await session.monitor.run_slow_tick()
    finally:
        await session.close()

    snapshot = controller.snapshot()
    logger.info(f"Final identity: {snapshot.to_dict()}")
    return session


def build_debug_app(
    config: VisionAvatarConfig,
    frames: Optional[FrameSource] = None,
    oracle: Optional[FaceOracle] = None
):
    """
    Wire a session behind the debug web UI.

    Nothing plays the greetings back in this mode, so nobody would lower the
    speaking flag after an announcement and every later one would be held.
    """
    # Web stack is only loaded for this command
    from .apps.debug_ui import create_app

    config.announcements.mark_speaking_on_announce = False
    session = build_session(config, frames=frames, oracle=oracle)
    app = create_app(session.controller, session.emitter, demo_mode=config.oracle.demo_mode)
    return session, app


async def run_debug_ui(config: VisionAvatarConfig, frames: Optional[FrameSource] = None):
    from .apps.debug_ui import DebugUIServer

    session, app = build_debug_app(config, frames=frames)
    server = DebugUIServer(app, host=config.debug_ui.host, port=config.debug_ui.port)

    await session.monitor.start()
    try:
        logger.info(f"Debug UI on http://{config.debug_ui.host}:{config.debug_ui.port}")
        await server.start()
    finally:
        await session.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vision-avatar", description="Session identity controller")
    parser.add_argument("--config", help="YAML config file (defaults to environment variables)")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    simulate = sub.add_parser("simulate", help="Run scripted ticks and print controller events")
    simulate.add_argument("--ticks", type=int, default=10)
    simulate.add_argument("--tick-seconds", type=float, default=3.0)
    simulate.add_argument("--say", action="append", default=[], help="Utterance to speak (repeatable)")
    simulate.add_argument("--say-after", type=int, default=1, help="Tick after which utterances are spoken")
    simulate.add_argument("--seed", type=int, help="Seed for the simulated oracle")

    debug = sub.add_parser("debug-ui", help="Run the monitor with the debug web UI")
    debug.add_argument("--frame", help="Encoded image to send on every tick")
    debug.add_argument("--clip", help="Encoded video clip for liveness checks")
    debug.add_argument("--host")
    debug.add_argument("--port", type=int)
    return parser


def main(argv: Optional[List[str]] = None):
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = _load_config(args.config)
    try:
        if args.command == "simulate":
            config.oracle.simulated = True
            if args.seed is not None:
                config.oracle.seed = args.seed
            asyncio.run(run_simulation(config, args.ticks, args.tick_seconds, args.say, args.say_after))
        elif args.command == "debug-ui":
            if args.host:
                config.debug_ui.host = args.host
            if args.port:
                config.debug_ui.port = args.port
            frames = StaticFrameSource.from_files(args.frame, args.clip) if args.frame else None
            asyncio.run(run_debug_ui(config, frames))
    except KeyboardInterrupt:
        logger.info("Exiting...")


if __name__ == "__main__":
    main()
