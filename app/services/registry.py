from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from app.services.patterns import Predicate, compile_pattern
from app.services.transforms import Transform

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")


@dataclass(frozen=True)
class PatternRule:
    glob: str
    method: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    description: str = ""
    predicate: Predicate = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.method is not None and self.method.upper() not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method}")
        if self.method is not None:
            object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "predicate", compile_pattern(self.glob))

    def matches(self, candidate: str) -> bool:
        return self.predicate(candidate)


@dataclass(frozen=True)
class TransformerEntry:
    rule: PatternRule
    transform: Transform

    def describe(self) -> dict[str, Any]:
        dump = getattr(self.transform, "model_dump", None)
        return {
            "pattern": self.rule.glob,
            "description": self.rule.description,
            "method": self.rule.method or "POST",
            "headers": sorted(self.rule.headers),
            "transform": dump() if callable(dump) else getattr(self.transform, "__name__", "custom"),
        }


@dataclass(frozen=True)
class DestinationEntry:
    rule: PatternRule
    url: str
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)

    def describe(self) -> dict[str, Any]:
        return {
            "pattern": self.rule.glob,
            "description": self.rule.description,
            "url": self.url,
            "method": self.method,
            "headers": sorted(self.headers),
        }


EntryT = TypeVar("EntryT", TransformerEntry, DestinationEntry)


class PatternRegistry(Generic[EntryT]):
    """Ordered pattern table resolved by first match.

    Readers take a snapshot of an immutable tuple; writers build a new tuple and
    swap it under a lock, so lookups never see a half-applied change.
    """

    def __init__(self, entries: Iterable[EntryT] = ()) -> None:
        self._entries: tuple[EntryT, ...] = tuple(entries)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> tuple[EntryT, ...]:
        return self._entries

    def resolve(self, candidate: str) -> EntryT | None:
        for entry in self._entries:
            if entry.rule.matches(candidate):
                return entry
        return None

    def set(self, entry: EntryT) -> None:
        with self._lock:
            entries = list(self._entries)
            for index, existing in enumerate(entries):
                if existing.rule.glob == entry.rule.glob:
                    entries[index] = entry
                    break
            else:
                entries.append(entry)
            self._entries = tuple(entries)
        logger.info("%s.set: pattern=%s size=%s", type(self).__name__, entry.rule.glob, len(entries))

    def remove(self, glob: str) -> bool:
        with self._lock:
            entries = tuple(entry for entry in self._entries if entry.rule.glob != glob)
            removed = len(entries) != len(self._entries)
            self._entries = entries
        return removed

    def replace_all(self, entries: Iterable[EntryT]) -> None:
        new_entries = tuple(entries)
        with self._lock:
            self._entries = new_entries
        logger.info("%s.replace_all: size=%s", type(self).__name__, len(new_entries))


class TransformerRegistry(PatternRegistry[TransformerEntry]):
    """Destination URL pattern -> payload transform plus method/header overrides."""


class DestinationRouter(PatternRegistry[DestinationEntry]):
    """Inbound request path pattern -> downstream destination."""
