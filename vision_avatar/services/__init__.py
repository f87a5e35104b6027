# vision_avatar/services/__init__.py
"""Face recognition oracles"""

from .oracle import (
    EmotionAttention,
    FaceOracle,
    FrameAnalysis,
    LivenessVerdict,
    OracleError,
    OracleResponseError,
    OracleTransportError,
    RecognitionResult,
    ResultSource,
    attention_level,
)
from .remote_oracle import RemoteFaceOracle
from .simulated_oracle import SimulatedFaceOracle
from ..utils.config import OracleConfig


def create_oracle(config: OracleConfig) -> FaceOracle:
    """Remote oracle when an API key is configured, simulated otherwise"""
    if config.demo_mode:
        return SimulatedFaceOracle.from_config(config)
    return RemoteFaceOracle(config)


__all__ = [
    "EmotionAttention",
    "FaceOracle",
    "FrameAnalysis",
    "LivenessVerdict",
    "OracleError",
    "OracleResponseError",
    "OracleTransportError",
    "RecognitionResult",
    "ResultSource",
    "attention_level",
    "RemoteFaceOracle",
    "SimulatedFaceOracle",
    "create_oracle",
]
