# coding=utf-8
"""
fingerprint.py

The Fingerprint record: landmark peaks plus the hashes derived from them.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import numpy as np

Peak = tuple[float, float]


@dataclass(frozen=True)
class Fingerprint:
    """Peaks as (frequency Hz, time s) in scan order, and their u64 hashes.

    :usage:
       >>> fp = Fingerprint.from_dict({"peaks": [[440.0, 0.5]], "hash": []})
       >>> len(fp)
       0
    """

    peaks: tuple[Peak, ...] = ()
    hashes: tuple[int, ...] = ()
    _hash_array: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Normalize whatever sequences we were handed to plain tuples.
        peaks = tuple((float(freq), float(time_)) for freq, time_ in self.peaks)
        hashes = tuple(int(hash_) for hash_ in self.hashes)
        object.__setattr__(self, "peaks", peaks)
        object.__setattr__(self, "hashes", hashes)
        object.__setattr__(self, "_hash_array", np.array(hashes, dtype=np.uint64))

    def __len__(self) -> int:
        return len(self.hashes)

    @property
    def hash_array(self) -> np.ndarray:
        """Hashes as a read-only np.uint64 array."""
        arr = self._hash_array.view()
        arr.flags.writeable = False
        return arr

    @classmethod
    def from_iterables(cls, peaks: Iterable[Peak], hashes: Iterable[int]) -> "Fingerprint":
        return cls(tuple(peaks), tuple(hashes))

    def to_dict(self) -> dict[str, Any]:
        """Document form, {"peaks": [[f, t], ...], "hash": [u64, ...]}."""
        return {
            "peaks": [[freq, time_] for freq, time_ in self.peaks],
            "hash": list(self.hashes),
        }

    @classmethod
    def from_dict(cls, doc: Mapping[str, Any]) -> "Fingerprint":
        if "peaks" not in doc or "hash" not in doc:
            raise ValueError("fingerprint document needs 'peaks' and 'hash' fields")
        return cls(tuple(tuple(pk) for pk in doc["peaks"]), tuple(doc["hash"]))
