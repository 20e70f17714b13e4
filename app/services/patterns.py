from __future__ import annotations

import re
from collections.abc import Callable
from functools import lru_cache

Predicate = Callable[[str], bool]


@lru_cache(maxsize=256)
def compile_glob(glob: str) -> re.Pattern[str]:
    """Translate a `*` glob into a case-insensitive, unanchored regex.

    Every other character is literal, so `.` and `?` in a URL pattern only
    match themselves.
    """
    if not glob:
        raise ValueError("Pattern must be a non-empty string")
    expression = re.escape(glob).replace(r"\*", ".*")
    return re.compile(expression, re.IGNORECASE)


def compile_pattern(glob: str) -> Predicate:
    compiled = compile_glob(glob)

    def predicate(candidate: str) -> bool:
        return compiled.search(candidate) is not None

    return predicate


def matches(glob: str, candidate: str) -> bool:
    return compile_glob(glob).search(candidate) is not None
