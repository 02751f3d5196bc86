"""
Action Log Parsing

Decodes the opaque action tokens recorded per session into a closed set of
typed actions. Token layout is positional, e.g.::

    result_opened_of_current_index_<rank>_result_index_<m>_public_id_<id>
    link_copied
    result_shared_on_mail
    summary_downloaded

Parsing happens once, here; everything downstream works with
``ParsedAction`` values. Malformed tokens become ``Ignored`` rather than
raising.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Union

import structlog

from surface_analytics.exceptions import ParseError

logger = structlog.get_logger(__name__)


class ActionKind(str, Enum):
    """Parsed action categories"""
    CLICK = "click"
    SHARE = "share"
    DOWNLOAD = "download"
    IGNORED = "ignored"


CLICK_PREFIX = "result_opened"
SHARE_TOKENS = {
    "link_copied": "link",
    "result_shared_on_mail": "mail",
}
DOWNLOAD_TOKENS = frozenset({"summary_downloaded"})

RANK_PATTERN = re.compile(r"current_index_(\d+)")
PRODUCT_PATTERN = re.compile(r"public_id_(.+)$")

RANK_BUCKETS = ("Rank 1", "Rank 2", "Rank 3", "Rank 4+")


@dataclass(frozen=True)
class Click:
    """A product result was opened at a 0-based rank"""
    rank: int
    product_id: Optional[str] = None
    kind: ActionKind = field(default=ActionKind.CLICK, init=False)

    @property
    def display_rank(self) -> int:
        return display_rank(self.rank)


@dataclass(frozen=True)
class Share:
    """Result link copied or shared by mail"""
    channel: str
    kind: ActionKind = field(default=ActionKind.SHARE, init=False)


@dataclass(frozen=True)
class Download:
    """Summary downloaded"""
    kind: ActionKind = field(default=ActionKind.DOWNLOAD, init=False)


@dataclass(frozen=True)
class Ignored:
    """Anything the engine does not count, including unranked clicks"""
    token: Optional[str]
    reason: str = "unrecognized"
    kind: ActionKind = field(default=ActionKind.IGNORED, init=False)


ParsedAction = Union[Click, Share, Download, Ignored]


@dataclass(frozen=True)
class ActionEntry:
    """One raw entry of a session's action log"""
    token: str
    timestamp: Optional[datetime] = None


def display_rank(rank: int) -> int:
    """1-based rank shown to users"""
    return rank + 1


def rank_bucket(rank: int) -> str:
    """Bucket a 0-based rank into Rank 1 / Rank 2 / Rank 3 / Rank 4+"""
    return RANK_BUCKETS[min(max(rank, 0), len(RANK_BUCKETS) - 1)]


class ActionLogParser:
    """
    Single parse step from action token to ParsedAction.

    Example:
        parser = ActionLogParser()
        parser.parse("result_opened_of_current_index_0_result_index_5_public_id_ABC123")
        # Click(rank=0, product_id="ABC123")
    """

    def parse(self, token: object) -> ParsedAction:
        try:
            return self._parse(token)
        except ParseError as e:
            logger.debug("Skipping malformed action token", error=str(e), token=repr(e.value))
            return Ignored(token=token if isinstance(token, str) else None, reason="malformed")

    def _parse(self, token: object) -> ParsedAction:
        if not isinstance(token, str):
            raise ParseError("Action token is not a string", value=token)

        text = token.strip()

        if text.startswith(CLICK_PREFIX):
            return self._parse_click(text)
        if text in SHARE_TOKENS:
            return Share(channel=SHARE_TOKENS[text])
        if text in DOWNLOAD_TOKENS:
            return Download()
        return Ignored(token=text)

    def _parse_click(self, text: str) -> ParsedAction:
        rank_match = RANK_PATTERN.search(text)
        if rank_match is None:
            # Unranked opens are excluded from click counts and rank statistics
            return Ignored(token=text, reason="unranked_click")

        product_match = PRODUCT_PATTERN.search(text)
        product_id = product_match.group(1) if product_match else None

        return Click(rank=int(rank_match.group(1)), product_id=product_id or None)

    def parse_entries(self, entries: Iterable[Union[ActionEntry, str]]) -> List[ParsedAction]:
        """Parse a whole action log, preserving order"""
        parsed = []
        for entry in entries:
            token = entry.token if isinstance(entry, ActionEntry) else entry
            parsed.append(self.parse(token))
        return parsed


_default_parser = ActionLogParser()


def parse_action(token: object) -> ParsedAction:
    """Convenience wrapper around the default ActionLogParser"""
    return _default_parser.parse(token)
