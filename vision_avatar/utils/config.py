# vision_avatar/utils/config.py
"""Configuration management for Vision Avatar"""
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict
import os

import yaml
from dotenv import load_dotenv


@dataclass
class OracleConfig:
    api_key: Optional[str] = None
    region: str = "us"
    timeout: float = 15.0
    # Search-or-index confidence threshold, 0-100. Permissive on purpose to
    # ride out lighting and angle changes.
    match_threshold: float = 40.0
    collection_description: str = "Vision Avatar Face Recognition Collection"
    # Simulated oracle knobs
    simulated: Optional[bool] = None
    match_probability: float = 0.7
    collection_capacity: int = 5
    similarity_min: float = 0.75
    similarity_max: float = 0.95
    live_probability: float = 0.95
    seed: Optional[int] = None

    @property
    def demo_mode(self) -> bool:
        """Simulated oracle unless explicitly disabled and an API key is present"""
        if self.simulated is not None:
            return self.simulated
        return not self.api_key

    def base_url(self, service: str) -> str:
        return f"https://{service}-api-{self.region}.realeyes.ai/v1"


@dataclass
class MonitorConfig:
    fast_interval: float = 3.0
    slow_interval: float = 60.0
    liveness_initial_delay: float = 60.0
    liveness_clip_ms: int = 3000


@dataclass
class AnnouncementConfig:
    recognition_cooldown: float = 60.0
    correction_cooldown: float = 10.0
    demographic_jump_years: float = 10.0
    placeholder_name: str = "Unknown"
    avatar_name: str = "Vera"
    # Raise the speaking gate as soon as we decide to talk, the TTS side
    # lowers it again when playback ends.
    mark_speaking_on_announce: bool = True


@dataclass
class StorageConfig:
    backend: str = "file"  # "file" or "memory"
    directory: str = "~/.vision_avatar"


@dataclass
class DebugUIConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    event_history: int = 1000


class VisionAvatarConfig:
    """Main configuration class"""

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        config_dict = config_dict or {}
        self.oracle = OracleConfig(**config_dict.get("oracle", {}))
        self.monitor = MonitorConfig(**config_dict.get("monitor", {}))
        self.announcements = AnnouncementConfig(**config_dict.get("announcements", {}))
        self.storage = StorageConfig(**config_dict.get("storage", {}))
        self.debug_ui = DebugUIConfig(**config_dict.get("debug_ui", {}))

    @classmethod
    def from_file(cls, file_path: str) -> "VisionAvatarConfig":
        """Load configuration from YAML file"""
        with open(file_path, "r") as f:
            config_dict = yaml.safe_load(f) or {}
        return cls(config_dict)

    @classmethod
    def from_env(cls) -> "VisionAvatarConfig":
        """Create configuration from environment variables (and a .env file if present)"""
        load_dotenv()
        config_dict = {
            "oracle": {
                "api_key": os.getenv("VERIFEYE_API_KEY") or None,
                "region": os.getenv("VERIFEYE_REGION", "us"),
                "match_threshold": float(os.getenv("VISION_MATCH_THRESHOLD", "40")),
            },
            "monitor": {
                "fast_interval": float(os.getenv("VISION_FAST_INTERVAL", "3")),
                "slow_interval": float(os.getenv("VISION_SLOW_INTERVAL", "60")),
            },
            "storage": {
                "backend": os.getenv("VISION_STORAGE_BACKEND", "file"),
                "directory": os.getenv("VISION_STORAGE_DIR", "~/.vision_avatar"),
            },
            "debug_ui": {
                "host": os.getenv("VISION_DEBUG_HOST", "127.0.0.1"),
                "port": int(os.getenv("VISION_DEBUG_PORT", "8080")),
            },
        }
        return cls(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (API key redacted)"""
        oracle = asdict(self.oracle)
        if oracle.get("api_key"):
            oracle["api_key"] = "***"
        return {
            "oracle": oracle,
            "monitor": asdict(self.monitor),
            "announcements": asdict(self.announcements),
            "storage": asdict(self.storage),
            "debug_ui": asdict(self.debug_ui),
        }
