"""
Target site matching for ScrollGuard.

A URL is a "target" when its hostname is in the monitored set, optionally
restricted to a path prefix (e.g. YouTube Shorts but not regular YouTube).
The rule table is plain data so new sites can be added without touching
the session state machine.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetRule:
    """
    One entry of the target table.

    Attributes:
        hostnames: Exact hostnames this rule applies to (lowercase).
        path_prefix: If set, only paths starting with this prefix match.
    """

    hostnames: Tuple[str, ...]
    path_prefix: Optional[str] = None

    def matches(self, hostname: str, path: str) -> bool:
        """Check a parsed hostname/path pair against this rule."""
        if hostname not in self.hostnames:
            return False
        if self.path_prefix is None:
            return True
        return path.startswith(self.path_prefix)


# Monitored destinations
DEFAULT_RULES: Tuple[TargetRule, ...] = (
    # YouTube Shorts only
    TargetRule(("youtube.com", "www.youtube.com"), path_prefix="/shorts"),
    # Instagram (all of it)
    TargetRule(("instagram.com", "www.instagram.com")),
    # Twitter / X (all of it)
    TargetRule(("twitter.com", "www.twitter.com", "x.com", "www.x.com")),
    # Facebook (all of it)
    TargetRule(("facebook.com", "www.facebook.com", "m.facebook.com")),
    # TikTok (all of it)
    TargetRule(("tiktok.com", "www.tiktok.com")),
)


class TargetMatcher:
    """
    Classifies URLs against a closed rule table.

    Never raises: anything that cannot be parsed as a URL with a hostname
    is simply not a target.
    """

    def __init__(self, rules: Iterable[TargetRule] = DEFAULT_RULES):
        self.rules: List[TargetRule] = list(rules)

    def is_target(self, url: Optional[str]) -> bool:
        """
        Check whether a URL points at a monitored destination.

        Args:
            url: Full URL string, or None.

        Returns:
            True if any rule matches the URL's hostname (and path prefix).
        """
        if not url:
            return False
        try:
            parts = urlsplit(url)
            hostname = parts.hostname
        except (ValueError, TypeError, AttributeError):
            return False
        if not hostname:
            return False

        path = parts.path or "/"
        return any(rule.matches(hostname, path) for rule in self.rules)

    def add_rule(self, rule: TargetRule) -> None:
        """Extend the table with another rule."""
        self.rules.append(rule)
        logger.debug(f"Added target rule: {rule}")


_default_matcher = TargetMatcher()


def is_target(url: Optional[str]) -> bool:
    """Classify a URL with the default rule table."""
    return _default_matcher.is_target(url)
