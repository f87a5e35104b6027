# vision_avatar/session/commands.py
"""Classify user utterances into identity-related intents"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import re


class Intent(str, Enum):
    SELF_INTRODUCTION = "self_introduction"
    ERASE_ME = "erase_me"
    IDENTITY_QUESTION = "identity_question"
    NONE = "none"


@dataclass
class Command:
    intent: Intent
    name: Optional[str] = None


# Only explicit introductions at the start of the utterance. "I'm ..." is left
# out, it matches "I'm wondering", "I'm thinking" and so on.
_INTRODUCTION = re.compile(r"^\s*(?:my name is|call me)\s+([^\W\d_][\w'-]*)", re.IGNORECASE)

_ERASE_ME = re.compile(
    r"(?:forget (?:me|about me)"
    r"|delete me"
    r"|(?:delete|clear) (?:my |all )?(?:profile|record|data|information)"
    r"|remove me"
    r"|remove my (?:profile|data)"
    r"|don'?t remember me"
    r"|erase me)",
    re.IGNORECASE,
)

_IDENTITY_QUESTION = re.compile(
    r"(?:do you know (?:me|my name|who i am)"
    r"|know my name"
    r"|recognize me"
    r"|remember me"
    r"|who am i"
    r"|what'?s my name"
    r"|you know me)",
    re.IGNORECASE,
)


class VoiceCommandInterpreter:
    """
    Maps an utterance to at most one Intent.

    Erase requests win over everything else ("don't remember me" also reads
    as an identity question), then introductions, then identity questions.
    """

    def classify(self, utterance: str) -> Command:
        if not utterance or not utterance.strip():
            return Command(Intent.NONE)

        if _ERASE_ME.search(utterance):
            return Command(Intent.ERASE_ME)

        match = _INTRODUCTION.match(utterance)
        if match:
            return Command(Intent.SELF_INTRODUCTION, name=match.group(1))

        if _IDENTITY_QUESTION.search(utterance):
            return Command(Intent.IDENTITY_QUESTION)

        return Command(Intent.NONE)
