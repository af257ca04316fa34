"""Kubernetes label selector parsing.

Supports the textual forms accepted by ``kubectl -l``::

    key=value  key==value  key!=value
    key in (a,b)  key notin (a,b)
    key  !key

Requirements are separated by commas outside parentheses and are ANDed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from .exceptions import SelectorParseError

_KEY_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*/)?[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?$")
_VALUE_RE = re.compile(r"^(([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9])?$")
_SET_RE = re.compile(r"^(?P<key>\S+)\s+(?P<op>in|notin)\s*\((?P<values>[^)]*)\)$")


@dataclass(frozen=True)
class Requirement:
    key: str
    operator: str
    values: Tuple[str, ...] = ()

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator == "exists":
            return self.key in labels
        if self.operator == "!":
            return self.key not in labels
        if self.operator in ("=", "in"):
            return self.key in labels and labels[self.key] in self.values
        # "!=" and "notin" match when the label is absent too
        return labels.get(self.key) not in self.values


@dataclass(frozen=True)
class LabelSelector:
    requirements: Tuple[Requirement, ...] = ()

    def matches(self, labels: Optional[Mapping[str, str]]) -> bool:
        labels = labels or {}
        return all(r.matches(labels) for r in self.requirements)

    @property
    def empty(self) -> bool:
        return not self.requirements


def _split(expression: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current = ""
    for char in expression:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise SelectorParseError(f"unbalanced parentheses in '{expression}'")
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += char
    if depth != 0:
        raise SelectorParseError(f"unbalanced parentheses in '{expression}'")
    parts.append(current)
    return [p.strip() for p in parts]


def _check_key(key: str, expression: str) -> str:
    if not _KEY_RE.match(key):
        raise SelectorParseError(f"invalid label key '{key}' in '{expression}'")
    return key


def _check_value(value: str, expression: str) -> str:
    if len(value) > 63 or not _VALUE_RE.match(value):
        raise SelectorParseError(f"invalid label value '{value}' in '{expression}'")
    return value


def _parse_requirement(term: str) -> Requirement:
    if not term:
        raise SelectorParseError("empty requirement in selector")

    match = _SET_RE.match(term)
    if match:
        key = _check_key(match.group("key"), term)
        values = tuple(
            _check_value(v.strip(), term) for v in match.group("values").split(",")
        )
        return Requirement(key, match.group("op"), values)

    for op in ("!=", "==", "="):
        if op in term:
            key, _, value = term.partition(op)
            key, value = key.strip(), value.strip()
            operator = "!=" if op == "!=" else "="
            return Requirement(_check_key(key, term), operator, (_check_value(value, term),))

    if term.startswith("!"):
        return Requirement(_check_key(term[1:].strip(), term), "!")
    return Requirement(_check_key(term, term), "exists")


def parse_selector(expression: Optional[str]) -> LabelSelector:
    """Parse ``expression``; an empty expression selects everything."""

    if expression is None or not expression.strip():
        return LabelSelector()
    return LabelSelector(tuple(_parse_requirement(t) for t in _split(expression)))
