"""Anti-spam detection for group messages.

Three filters, each behind its own group toggle and checked in this order:
plain links (anti_link), obfuscated links (anti_link2) and mass mentions
(anti_call). Text is matched lowercased.
"""

import re
from typing import Optional

from rental_bot.models.settings import AntiSpamSettings

LINK_PATTERNS = [
    re.compile(r"https?://\S+"),
    re.compile(r"www\.\S+"),
    re.compile(r"\S+\.(com|org|net|io|me|co|ru)"),
    re.compile(r"t\.me/\S+"),
    re.compile(r"chat\.whatsapp\.com/\S+"),
]

OBFUSCATED_LINK_PATTERNS = [
    re.compile(r"[a-z0-9]+ ?\. ?[a-z0-9]+"),  # "site . com"
    re.compile(r"\S*\*\S*\.\S*"),  # "s*te.com"
    re.compile(r"\S*\(\S*\)\.\S*"),  # "(site).com"
]

MASS_MENTION_PATTERNS = [
    re.compile(r"@[0-9]{10,}"),
    re.compile(r"(@\S+ ){5,}"),
]

WARNINGS = {
    "anti_link": "Links are not allowed in this group",
    "anti_link2": "Links are not allowed in this group",
    "anti_call": "Mass mentions are not allowed",
}


def _matches(patterns: list[re.Pattern[str]], text: str) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def contains_link(text: str) -> bool:
    return _matches(LINK_PATTERNS, text.lower())


def contains_obfuscated_link(text: str) -> bool:
    return _matches(OBFUSCATED_LINK_PATTERNS, text.lower())


def is_mass_mention(text: str) -> bool:
    return _matches(MASS_MENTION_PATTERNS, text.lower())


def detect_violation(settings: AntiSpamSettings, text: str) -> Optional[str]:
    """First enabled filter the text trips.

    Args:
        settings: the group's anti-spam toggles
        text: message text or caption

    Returns:
        Name of the violated toggle ("anti_link", "anti_link2" or
        "anti_call"), or None if the message is clean
    """
    if not text:
        return None
    if settings.anti_link and contains_link(text):
        return "anti_link"
    if settings.anti_link2 and contains_obfuscated_link(text):
        return "anti_link2"
    if settings.anti_call and is_mass_mention(text):
        return "anti_call"
    return None
