# vision_avatar/context/vision_prompt.py
"""Render the session identity into an LLM system prompt"""
from typing import Optional

from ..utils.state import AttentionLevel, SessionIdentity

ATTENTION_DESCRIPTIONS = {
    AttentionLevel.HIGH: "User is focused and engaged",
    AttentionLevel.MEDIUM: "User attention is moderate",
    AttentionLevel.LOW: "User seems distracted or looking away",
}

_PREAMBLE = """You are {avatar_name}, a friendly AI avatar with vision capabilities. You can see the person you're talking to through their webcam and respond to their visual cues.

Rules:
1. Keep responses short (1-2 sentences) - this is a voice conversation
2. Have a natural dialogue, don't interrogate
3. Never repeat questions you've already asked
4. Only mention what you see when it is relevant

Current vision state:"""

_GUIDELINES = """

Conversation guidelines:
- No user name: ask their name once in the greeting, then just talk
- Known user: greet them by name and never ask for it again
- If they ask what you see, briefly mention emotion, attention, age and gender
- "Forget me": confirm with "Done! I've deleted your profile."
- Face data is stored locally on this device only"""


def _percent(value: float) -> str:
    return f"{value * 100:.0f}%"


def describe_user(identity: SessionIdentity) -> str:
    if identity.display_name:
        status = "NEW" if identity.is_newly_indexed else "returning"
        return (
            f"- User: {identity.display_name} ({status} user, "
            f"{_percent(identity.match_confidence)} match confidence)"
        )
    return "- User: Unknown (first time meeting this person)"


def build_system_prompt(identity: SessionIdentity, avatar_name: str = "Vera", extra: Optional[str] = None) -> str:
    """
    Build the system prompt for the conversation model from what the
    camera currently tells us about the user.
    """
    lines = [_PREAMBLE.format(avatar_name=avatar_name), describe_user(identity)]

    if identity.is_live:
        lines.append("- Liveness: LIVE person detected")
    else:
        lines.append("- Liveness: WARNING: Not a live person (possible photo/video)")

    demographics = identity.demographics
    if demographics:
        lines.append(
            f"- Age: {demographics.age_estimate:.0f} years old "
            f"(range: {demographics.age_min:.0f}-{demographics.age_max:.0f})"
        )
        lines.append(
            f"- Gender: {demographics.gender_value} ({_percent(demographics.gender_confidence)} confidence)"
        )

    if identity.attention_level:
        level = identity.attention_level
        lines.append(f"- Attention: {level.value.upper()} - {ATTENTION_DESCRIPTIONS[level]}")
    if identity.emotion:
        lines.append(f"- Emotion: {identity.emotion}")

    prompt = "\n".join(lines) + _GUIDELINES
    if extra:
        prompt += f"\n\n{extra}"
    return prompt
