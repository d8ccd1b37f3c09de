"""Find references to code-review changes (CLs) in free text."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator

CHANGE_URL_RE = re.compile(
    r"(?:https?://[\w.-]+)?/c/[\w.~/-]+?/\+/(\d{6,})(?!\d)"
    r"|(?:https?://)?crrev\.com/c/(\d{6,})(?!\d)"
)
CHANGE_TOKEN_RE = re.compile(r"\bCL[\s\-#:]*(\d{6,})(?!\d)", re.IGNORECASE)


class ChangeIdSet:
    """Insertion-ordered, duplicate-free collection of change ids."""

    def __init__(self, initial: Iterable[str] = ()) -> None:
        self._ids: dict[str, None] = {}
        self.update(initial)

    def add(self, change_id: str) -> None:
        self._ids.setdefault(change_id, None)

    def update(self, ids: Iterable[str]) -> None:
        for change_id in ids:
            self.add(change_id)

    def as_tuple(self) -> tuple[str, ...]:
        return tuple(self._ids)

    def __contains__(self, change_id: object) -> bool:
        return change_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)


def _matches(text: str) -> list[tuple[int, str]]:
    found: list[tuple[int, str]] = []
    for m in CHANGE_URL_RE.finditer(text):
        found.append((m.start(), m.group(1) or m.group(2)))
    for m in CHANGE_TOKEN_RE.finditer(text):
        found.append((m.start(), m.group(1)))
    found.sort(key=lambda item: item[0])
    return found


def extract_change_ids(*texts: str | None) -> list[str]:
    """Return bare numeric change ids referenced in ``texts``, first mention first."""
    ids = ChangeIdSet()
    for text in texts:
        if not text:
            continue
        ids.update(change_id for _, change_id in _matches(text))
    return list(ids.as_tuple())


__all__ = ["ChangeIdSet", "extract_change_ids", "CHANGE_URL_RE", "CHANGE_TOKEN_RE"]
