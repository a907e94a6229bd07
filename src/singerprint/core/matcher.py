# coding=utf-8
"""
matcher.py

Named fingerprint collection and best-match lookup by hash overlap.
"""

import logging
from collections import Counter, defaultdict
from collections.abc import Iterator

import numpy as np

from singerprint.core.fingerprint import Fingerprint

logger = logging.getLogger("singerprint")

# A match needs strictly more than this many shared hashes
DEFAULT_THRESHOLD = 10


def compare_fingerprints(query: Fingerprint, stored: Fingerprint) -> int:
    """Count query hashes that occur anywhere in stored's hashes.

    Repeats on the query side each count; repeats on the stored side
    don't add anything.
    """
    if not len(query) or not len(stored):
        return 0
    return int(np.count_nonzero(np.isin(query.hash_array, stored.hash_array)))


class FingerprintMatcher(object):
    """Hold named fingerprints and find the best match for a query.

    An inverted index (hash -> names) is kept up to date on add/remove,
    so a query only touches entries that share at least one hash.

    :usage:
       >>> matcher = FingerprintMatcher()
       >>> matcher.add('clip1', fp)
       >>> matcher.find_best_match(query_fp)
       'clip1'
    """

    def __init__(self, threshold: int = DEFAULT_THRESHOLD) -> None:
        # Minimum score (exclusive) to report a match
        self.threshold = threshold
        self.fingerprints: dict[str, Fingerprint] = {}
        self.index: defaultdict[int, set[str]] = defaultdict(set)

    def __len__(self) -> int:
        return len(self.fingerprints)

    def __contains__(self, name: object) -> bool:
        return name in self.fingerprints

    def __iter__(self) -> Iterator[str]:
        return iter(self.fingerprints)

    def names(self) -> list[str]:
        return sorted(self.fingerprints)

    def get(self, name: str) -> Fingerprint:
        return self.fingerprints[name]

    def _unindex(self, name: str) -> None:
        for hash_ in set(self.fingerprints[name].hashes):
            holders = self.index[hash_]
            holders.discard(name)
            if not holders:
                del self.index[hash_]

    def add(self, name: str, fingerprint: Fingerprint) -> None:
        """Store fingerprint under name, replacing any previous entry."""
        if name in self.fingerprints:
            self._unindex(name)
        self.fingerprints[name] = fingerprint
        for hash_ in set(fingerprint.hashes):
            self.index[hash_].add(name)

    def remove(self, name: str) -> None:
        """Drop the entry for name.  Raises KeyError if it isn't stored."""
        if name not in self.fingerprints:
            raise KeyError(f"name {name} not found")
        self._unindex(name)
        del self.fingerprints[name]
        logger.debug("removed %s", name)

    def _raw_scores(self, query: Fingerprint) -> Counter[str]:
        scores: Counter[str] = Counter()
        for hash_, count in Counter(query.hashes).items():
            for name in self.index.get(hash_, ()):
                scores[name] += count
        return scores

    def score(self, query: Fingerprint, name: str) -> int:
        """Overlap score of query against the stored entry called name."""
        return compare_fingerprints(query, self.fingerprints[name])

    def scores(self, query: Fingerprint) -> list[tuple[str, int]]:
        """All entries sharing any hash with query, best first.

        Equal scores are ordered by name.
        """
        return sorted(self._raw_scores(query).items(), key=lambda item: (-item[1], item[0]))

    def find_best_match(self, query: Fingerprint) -> str | None:
        """Name of the highest-scoring entry, or None.

        None if nothing is stored or the best score doesn't exceed
        self.threshold.  Ties go to the lexicographically first name.
        """
        ranked = self.scores(query)
        if not ranked:
            return None
        best_name, best_score = ranked[0]
        logger.debug("best candidate %s with %d of %d hashes", best_name, best_score, len(query))
        if best_score > self.threshold:
            return best_name
        return None

    def list(self) -> Iterator[str]:
        """Describe each entry as '<name> (<n> hashes)'."""
        for name in self.names():
            yield f"{name} ({len(self.fingerprints[name])} hashes)"
