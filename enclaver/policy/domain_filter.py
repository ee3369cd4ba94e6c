"""Wildcard matching of domain names."""

from __future__ import annotations

import string

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)

_SUPERWILD = "**"
_WILD = "*"


def _ascii_lower(text: str) -> str:
    return text.translate(_ASCII_LOWER)


def _pattern_part(part: str) -> str:
    if part in (_SUPERWILD, _WILD):
        return part
    return _ascii_lower(part)


class Domain:
    """A domain name split into labels, most significant first."""

    def __init__(self, dom: str) -> None:
        self.parts = tuple(_ascii_lower(label) for label in reversed(dom.split(".")))


class Pattern:
    """A domain pattern where "*" matches one label and a leading "**" matches one or more."""

    def __init__(self, pat: str) -> None:
        self.parts = tuple(_pattern_part(part) for part in reversed(pat.split(".")))

    def matches(self, query: Domain) -> bool:
        labels = iter(query.parts)
        for part in self.parts:
            label = next(labels, None)
            if label is None:
                return False
            if part == _SUPERWILD:
                return True
            if part == _WILD:
                continue
            if part != label:
                return False
        # the pattern is exhausted; the query must be too
        return next(labels, None) is None


class DomainFilter:
    """A set of domain patterns; a domain matches if any pattern does."""

    def __init__(self) -> None:
        self._patterns: list[Pattern] = []

    @classmethod
    def allow_all(cls) -> DomainFilter:
        domain_filter = cls()
        domain_filter.add(_SUPERWILD)
        return domain_filter

    def add(self, pattern: str) -> None:
        self._patterns.append(Pattern(pattern))

    def matches(self, domain: str) -> bool:
        query = Domain(domain)
        return any(pattern.matches(query) for pattern in self._patterns)