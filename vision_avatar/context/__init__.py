# vision_avatar/context/__init__.py
"""Conversation context built from vision signals"""

from .vision_prompt import build_system_prompt, describe_user

__all__ = ["build_system_prompt", "describe_user"]
