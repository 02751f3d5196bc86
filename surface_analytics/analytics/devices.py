"""
Device Classification

Infers a canonical device category from the explicit ``deviceType`` hint or,
failing that, from the raw user-agent string in ``deviceInfo``.

User-agent rules are ordered tables evaluated top to bottom; the first
matching pattern decides the category. Tablet rules run before mobile rules
because many tablet user agents also carry a "mobile" token.
"""

import re
from enum import Enum
from typing import Optional, Pattern, Sequence, Tuple


class DeviceType(str, Enum):
    """Canonical device categories"""
    DESKTOP = "Desktop"
    MOBILE = "Mobile"
    TABLET = "Tablet"
    UNKNOWN = "Unknown"


UNKNOWN_SENTINELS = frozenset({"", "unknown", "none", "null", "n/a", "undefined"})

# Substring checks for an explicit deviceType value, in precedence order
EXPLICIT_KEYWORDS: Tuple[Tuple[str, DeviceType], ...] = (
    ("mobile", DeviceType.MOBILE),
    ("tablet", DeviceType.TABLET),
    ("desktop", DeviceType.DESKTOP),
)

TABLET_PATTERNS = (
    r"ipad",
    r"android(?!.*mobile)",
    r"tablet",
    r"playbook",
    r"kindle",
    r"silk",
    r"nexus.*7",
    r"nexus.*10",
    r"nexus.*9",
)

MOBILE_PATTERNS = (
    r"mobile",
    r"iphone",
    r"ipod",
    r"android.*mobile",
    r"blackberry",
    r"windows phone",
    r"opera mini",
    r"iemobile",
    r"palm",
)

# Browser tokens are only a weak desktop signal; they sit last in the table
DESKTOP_PATTERNS = (
    r"windows",
    r"macintosh",
    r"mac os",
    r"linux",
    r"x11",
    r"unix",
    r"chrome",
    r"firefox",
    r"safari",
    r"edge",
    r"opera",
    r"msie",
    r"trident",
)


def _build_rules(
    *families: Tuple[Sequence[str], DeviceType],
) -> Tuple[Tuple[Pattern[str], DeviceType], ...]:
    return tuple(
        (re.compile(pattern), device)
        for patterns, device in families
        for pattern in patterns
    )


USER_AGENT_RULES = _build_rules(
    (TABLET_PATTERNS, DeviceType.TABLET),
    (MOBILE_PATTERNS, DeviceType.MOBILE),
    (DESKTOP_PATTERNS, DeviceType.DESKTOP),
)


class DeviceClassifier:
    """
    Rule-table device classifier.

    Example:
        classifier = DeviceClassifier()
        classifier.classify(None, "Mozilla/5.0 (iPad; CPU OS 14_0)")  # DeviceType.TABLET
    """

    def __init__(
        self,
        rules: Tuple[Tuple[Pattern[str], DeviceType], ...] = USER_AGENT_RULES,
        explicit_keywords: Tuple[Tuple[str, DeviceType], ...] = EXPLICIT_KEYWORDS,
    ):
        self.rules = rules
        self.explicit_keywords = explicit_keywords

    def classify(
        self,
        explicit_type: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> DeviceType:
        """
        Resolve the device category for one session.

        Args:
            explicit_type: Raw ``deviceType`` field, if present
            user_agent: Raw ``deviceInfo`` user-agent string, if present

        Returns:
            One of Desktop, Mobile, Tablet or Unknown
        """
        explicit = self.from_explicit(explicit_type)
        if explicit is not None:
            return explicit
        return self.from_user_agent(user_agent)

    def from_explicit(self, explicit_type: Optional[str]) -> Optional[DeviceType]:
        """Normalize an explicit device hint; None when it carries no usable signal"""
        if not isinstance(explicit_type, str):
            return None
        normalized = explicit_type.strip().lower()
        if normalized in UNKNOWN_SENTINELS:
            return None
        for keyword, device in self.explicit_keywords:
            if keyword in normalized:
                return device
        # Unmatched hints fall through to the user agent so every session lands in one of the four categories
        return None

    def from_user_agent(self, user_agent: Optional[str]) -> DeviceType:
        """Match a user-agent string against the ordered rule table"""
        if not isinstance(user_agent, str) or not user_agent.strip():
            return DeviceType.UNKNOWN
        ua = user_agent.lower()
        for pattern, device in self.rules:
            if pattern.search(ua):
                return device
        return DeviceType.UNKNOWN


_default_classifier = DeviceClassifier()


def classify_device(
    explicit_type: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> DeviceType:
    """Convenience wrapper around the default DeviceClassifier"""
    return _default_classifier.classify(explicit_type, user_agent)
