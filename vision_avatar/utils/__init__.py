# vision_avatar/utils/__init__.py
"""Vision Avatar utilities module"""

from .config import (
    OracleConfig,
    MonitorConfig,
    AnnouncementConfig,
    StorageConfig,
    DebugUIConfig,
    VisionAvatarConfig
)
from .state import (
    AttentionLevel,
    Demographics,
    ProfileRecord,
    SessionIdentity,
    is_real_name
)

__all__ = [
    'OracleConfig',
    'MonitorConfig',
    'AnnouncementConfig',
    'StorageConfig',
    'DebugUIConfig',
    'VisionAvatarConfig',
    'AttentionLevel',
    'Demographics',
    'ProfileRecord',
    'SessionIdentity',
    'is_real_name'
]
