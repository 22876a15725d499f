"""Topic templates with ``{name}`` parameter levels.

A template such as ``sensor/{id}/temperature`` is parsed once into an ordered
tuple of levels. Incoming topics are matched structurally: the level counts
must be equal, literal levels must compare equal and parameter levels bind the
received text to their name.

MQTT wildcards (``+`` and ``#``) are never interpreted here. They only appear
in the subscription filter built by :func:`mqttctl.domain.policy.augment`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Mapping, Tuple, Union

from .errors import InvalidTopicParameter, MissingTopicParameter, TemplateSyntaxError

_PARAMETER_RE = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")
_WILDCARDS = ("+", "#")


def normalize_topic(raw: str) -> str:
    """Trim ``raw``, drop one leading ``/`` and make it end with exactly one ``/``.

    Blank input stays blank so an empty base topic prefixes nothing.
    """

    topic = raw.strip()
    if not topic:
        return ""
    if topic.startswith("/"):
        topic = topic[1:]
    return topic.rstrip("/") + "/"


def split_levels(raw: str) -> list[str]:
    """Return the levels of ``raw`` after normalization."""

    normalized = normalize_topic(raw)
    if not normalized:
        return []
    return normalized[:-1].split("/")


@dataclass(frozen=True, slots=True)
class Literal:
    text: str


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str


Level = Union[Literal, Parameter]


@dataclass(slots=True)
class MatchResult:
    """Outcome of one match attempt.

    ``parameters`` is only meaningful when ``matched`` is true; on a mismatch it
    may hold bindings collected before the first differing level.
    """

    matched: bool = True
    parameters: Dict[str, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.matched


def _parse_level(template: str, level: str) -> Level:
    if "{" not in level and "}" not in level:
        for char in _WILDCARDS:
            if char in level:
                raise TemplateSyntaxError(template, f"wildcard {char!r} is reserved for subscriptions")
        return Literal(level)
    if level.count("{") != level.count("}"):
        raise TemplateSyntaxError(template, f"unbalanced braces in level {level!r}")
    if level == "{}":
        raise TemplateSyntaxError(template, "empty parameter name")
    match = _PARAMETER_RE.match(level)
    if match is None:
        raise TemplateSyntaxError(template, f"level {level!r} is not a single {{identifier}} placeholder")
    return Parameter(match.group(1))


def _level_value(name: str, value: str) -> str:
    if not value:
        raise InvalidTopicParameter(name, value, "empty level")
    if "/" in value:
        raise InvalidTopicParameter(name, value, "contains a level separator")
    for char in _WILDCARDS:
        if char in value:
            raise InvalidTopicParameter(name, value, f"wildcard {char!r} is not allowed in a published topic")
    return value


@dataclass(frozen=True, slots=True)
class TopicTemplate:
    """Immutable parsed form of a topic template."""

    raw: str
    levels: Tuple[Level, ...]
    trailing_slash: bool = True

    @classmethod
    def parse(cls, raw: str) -> TopicTemplate:
        levels = split_levels(raw)
        if not levels:
            raise TemplateSyntaxError(raw, "a template needs at least one level")

        parsed: list[Level] = []
        seen: set[str] = set()
        for level in levels:
            item = _parse_level(raw, level)
            if isinstance(item, Parameter):
                if item.name in seen:
                    raise TemplateSyntaxError(raw, f"duplicate parameter {item.name!r}")
                seen.add(item.name)
            parsed.append(item)
        return cls(raw=raw, levels=tuple(parsed), trailing_slash=raw.strip().endswith("/"))

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return tuple(level.name for level in self.levels if isinstance(level, Parameter))

    def match(self, received: str) -> MatchResult:
        result = MatchResult()
        received_levels = split_levels(received)
        if len(received_levels) != len(self.levels):
            result.matched = False
            return result

        for level, text in zip(self.levels, received_levels):
            if isinstance(level, Parameter):
                result.parameters[level.name] = text
                continue
            if level.text != text:
                result.matched = False
                break
        return result

    def substitute(self, parameters: Mapping[str, str]) -> str:
        parts: list[str] = []
        for level in self.levels:
            if isinstance(level, Literal):
                parts.append(level.text)
                continue
            try:
                value = parameters[level.name]
            except KeyError:
                raise MissingTopicParameter(level.name) from None
            parts.append(_level_value(level.name, str(value)))
        topic = "/".join(parts)
        return topic + "/" if self.trailing_slash else topic

    def __str__(self) -> str:
        return "".join(
            f"{{{level.name}}}/" if isinstance(level, Parameter) else f"{level.text}/"
            for level in self.levels
        )


__all__ = [
    "Level",
    "Literal",
    "MatchResult",
    "Parameter",
    "TopicTemplate",
    "normalize_topic",
    "split_levels",
]
