from __future__ import annotations
from typing import Iterator, List, Sequence

from .constants import (
    CANDIDATE_LIMIT, NAME_EXTS, NAME_NUMBER_MAX, NAME_NUMBER_STEMS,
    NAME_PREFIX_COUNT, NAME_PREFIXES, NAME_SUFFIXES,
)


class NameGenerator:
    """Deterministic guesses at filenames for the last-resort brute scan.

    Prefix vocabulary x suffixes x extensions first, then a numeric series
    (1..N, bare and with a few stems) x extensions. Order is fixed, so two
    generators with the same vocabulary always yield the same list.
    """

    def __init__(self, prefixes: Sequence[str] = NAME_PREFIXES[:NAME_PREFIX_COUNT],
                 exts: Sequence[str] = NAME_EXTS, number_max: int = NAME_NUMBER_MAX):
        self.prefixes = list(prefixes)
        self.exts = list(exts)
        self.number_max = number_max

    def _raw(self) -> Iterator[str]:
        for prefix in self.prefixes:
            for e in self.exts:
                for suffix in NAME_SUFFIXES:
                    yield f"{prefix}{suffix}.{e}"
        for i in range(1, self.number_max + 1):
            for e in self.exts:
                for stem in NAME_NUMBER_STEMS:
                    yield f"{stem}{i}.{e}"

    def generate(self, limit: int = CANDIDATE_LIMIT) -> List[str]:
        if limit <= 0:
            return []
        seen, out = set(), []
        for name in self._raw():
            if name in seen:
                continue
            seen.add(name)
            out.append(name)
            if len(out) >= limit:
                break
        return out
