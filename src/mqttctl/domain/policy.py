from __future__ import annotations

from enum import Enum

from .topics import normalize_topic


class MatchPolicy(str, Enum):
    """Wildcard appended to a base topic when subscribing at the broker."""

    NONE = "none"
    SINGLE_LEVEL = "single_level"
    MULTI_LEVEL = "multi_level"

    @property
    def suffix(self) -> str:
        return _SUFFIXES[self]

    @classmethod
    def parse(cls, value: str | MatchPolicy) -> MatchPolicy:
        """Read a policy from configuration text (``none``, ``single``, ``+``, ``multi_level``...)."""

        if isinstance(value, MatchPolicy):
            return value
        key = value.strip().lower().replace("-", "_")
        try:
            return _ALIASES[key]
        except KeyError:
            raise ValueError(f"Unknown match policy: {value!r}") from None


_SUFFIXES = {
    MatchPolicy.NONE: "",
    MatchPolicy.SINGLE_LEVEL: "+",
    MatchPolicy.MULTI_LEVEL: "#",
}

_ALIASES = {
    "none": MatchPolicy.NONE,
    "": MatchPolicy.NONE,
    "single_level": MatchPolicy.SINGLE_LEVEL,
    "single": MatchPolicy.SINGLE_LEVEL,
    "+": MatchPolicy.SINGLE_LEVEL,
    "multi_level": MatchPolicy.MULTI_LEVEL,
    "multi": MatchPolicy.MULTI_LEVEL,
    "#": MatchPolicy.MULTI_LEVEL,
}


def augment(base_topic: str, policy: MatchPolicy) -> str:
    """Build the subscription filter for ``base_topic`` under ``policy``.

    >>> augment("/home/sensors", MatchPolicy.MULTI_LEVEL)
    'home/sensors/#'
    """

    return normalize_topic(base_topic) + policy.suffix


__all__ = ["MatchPolicy", "augment"]
