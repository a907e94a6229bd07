# coding=utf-8
"""
analyzer.py

Landmark fingerprint analysis: magnitude spectrogram, local-maximum
peak picking, and anchor/target pair hashing.
"""

import hashlib
import logging
import struct
import time
from collections.abc import Sequence

import numpy as np
import scipy.ndimage  # type: ignore[import-untyped]

from singerprint.core.fingerprint import Fingerprint, Peak
from singerprint.utils import audio, stft

logger = logging.getLogger("singerprint")

# Default analysis parameters (tuned at 44.1 kHz)
DEFAULT_SAMPLE_RATE = 44100
DEFAULT_WINDOW_SIZE = 2048
DEFAULT_HOP_SIZE = 1024
# Minimum spectral magnitude for a landmark
DEFAULT_THRESHOLD = 0.1
# Half-width of the local-maximum neighbourhood
DEFAULT_INNER_RADIUS = 3
# Frames/bins skipped at every edge of the spectrogram
DEFAULT_OUTER_RADIUS = 10
# Max targets paired with each anchor
DEFAULT_FAN_OUT = 5

_HASH_STRUCT = struct.Struct("<qqq")


def check_frame_params(window_size: int, hop_size: int) -> None:
    """Raise ValueError unless 0 < hop_size <= window_size."""
    if int(window_size) != window_size or window_size <= 0:
        raise ValueError(f"window_size must be a positive integer, not {window_size}")
    if int(hop_size) != hop_size or hop_size <= 0:
        raise ValueError(f"hop_size must be a positive integer, not {hop_size}")
    if hop_size > window_size:
        raise ValueError(f"hop_size ({hop_size}) must not exceed window_size ({window_size})")


def spectrogram(
    samples: Sequence[float] | np.ndarray,
    window_size: int = DEFAULT_WINDOW_SIZE,
    hop_size: int = DEFAULT_HOP_SIZE,
) -> np.ndarray:
    """Return the (n_frames, window_size // 2) magnitude spectrogram.

    Frames start at sample 0 and advance by hop_size; a trailing partial
    window is dropped, so input shorter than window_size gives zero frames.
    """
    check_frame_params(window_size, hop_size)
    data = np.ascontiguousarray(samples, dtype=np.float64)
    if data.ndim != 1:
        raise ValueError(f"samples must be one-dimensional, got shape {data.shape}")
    frames = stft.frame(data, window_length=window_size, hop_length=hop_size)
    return stft.magnitude_frames(frames, n_bins=window_size // 2)


def _neighbourhood_footprint(radius: int) -> np.ndarray:
    """Square (2r+1)^2 footprint with the centre cell switched off."""
    footprint = np.ones((2 * radius + 1, 2 * radius + 1), dtype=bool)
    footprint[radius, radius] = False
    return footprint


def is_local_maximum(
    spec: np.ndarray,
    freq_bin: int,
    frame_ix: int,
    threshold: float = DEFAULT_THRESHOLD,
    inner_radius: int = DEFAULT_INNER_RADIUS,
) -> bool:
    """Scalar test of one spectrogram cell.

    True if spec[frame_ix, freq_bin] is at least threshold and strictly
    greater than every other cell within inner_radius in both axes.
    The caller must keep the neighbourhood inside the array.
    """
    current = spec[frame_ix, freq_bin]
    if current < threshold:
        return False
    patch = spec[frame_ix - inner_radius: frame_ix + inner_radius + 1,
                 freq_bin - inner_radius: freq_bin + inner_radius + 1]
    if patch.shape != (2 * inner_radius + 1, 2 * inner_radius + 1):
        raise IndexError(f"neighbourhood of ({frame_ix}, {freq_bin}) leaves the spectrogram")
    others = patch[_neighbourhood_footprint(inner_radius)]
    return bool(np.all(others < current))


def peak_cells(
    spec: np.ndarray,
    threshold: float = DEFAULT_THRESHOLD,
    inner_radius: int = DEFAULT_INNER_RADIUS,
    outer_radius: int = DEFAULT_OUTER_RADIUS,
) -> np.ndarray:
    """Return an (n, 2) int array of [frame, bin] landmark cells, time-major.

    The scan skips max(outer_radius, inner_radius) cells at every edge,
    so each neighbourhood compared against lies wholly in the array.
    """
    if inner_radius < 1:
        raise ValueError(f"inner_radius must be at least 1, not {inner_radius}")
    border = max(outer_radius, inner_radius)
    n_frames, n_bins = spec.shape if spec.ndim == 2 else (0, 0)
    if n_frames - 2 * border <= 0 or n_bins - 2 * border <= 0:
        return np.zeros((0, 2), dtype=int)
    # Largest value among the neighbours of each cell (centre excluded)
    nbr_max = scipy.ndimage.maximum_filter(
        spec, footprint=_neighbourhood_footprint(inner_radius), mode="constant", cval=-np.inf
    )
    is_peak = np.logical_and(spec >= threshold, spec > nbr_max)
    inside = np.zeros_like(is_peak)
    inside[border:n_frames - border, border:n_bins - border] = True
    # np.nonzero walks in C order: frame ascending, then bin ascending
    frames, bins = np.nonzero(np.logical_and(is_peak, inside))
    return np.c_[frames, bins].astype(int)


def extract_peaks(
    spec: np.ndarray,
    sample_rate: int,
    window_size: int = DEFAULT_WINDOW_SIZE,
    hop_size: int = DEFAULT_HOP_SIZE,
    threshold: float = DEFAULT_THRESHOLD,
    inner_radius: int = DEFAULT_INNER_RADIUS,
    outer_radius: int = DEFAULT_OUTER_RADIUS,
) -> list[Peak]:
    """Landmarks of spec as (frequency Hz, time s), in scan order."""
    cells = peak_cells(spec, threshold, inner_radius, outer_radius)
    freq_scale = sample_rate / (2.0 * window_size)
    time_scale = hop_size / float(sample_rate)
    return [(float(bin_ix * freq_scale), float(frame_ix * time_scale))
            for frame_ix, bin_ix in cells]


def landmark_hash(anchor_freq: float, target_freq: float, time_delta: float) -> int:
    """Unsigned 64-bit hash of one anchor/target pair.

    Each value is rounded to the nearest integer, then the three are packed
    as little-endian int64 and run through an 8-byte BLAKE2b digest.
    Pure function: no shared state.
    """
    packed = _HASH_STRUCT.pack(int(round(anchor_freq)), int(round(target_freq)), int(round(time_delta)))
    return int.from_bytes(hashlib.blake2b(packed, digest_size=8).digest(), "little")


def generate_hashes(peaks: Sequence[Peak], fan_out: int = DEFAULT_FAN_OUT) -> list[int]:
    """Pair each peak with up to fan_out following peaks and hash each pair."""
    hashes = []
    npeaks = len(peaks)
    for i, (anchor_freq, anchor_time) in enumerate(peaks):
        for target_freq, target_time in peaks[i + 1: min(npeaks, i + 1 + fan_out)]:
            hashes.append(landmark_hash(anchor_freq, target_freq, target_time - anchor_time))
    return hashes


class Analyzer(object):
    """Turn sample arrays (or wav files) into Fingerprints.

    :usage:
       >>> anlz = Analyzer(sample_rate=44100)
       >>> fp = anlz.process_audio(samples)
       >>> fp.peaks, fp.hashes
    """

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        window_size: int = DEFAULT_WINDOW_SIZE,
        hop_size: int = DEFAULT_HOP_SIZE,
        threshold: float = DEFAULT_THRESHOLD,
        inner_radius: int = DEFAULT_INNER_RADIUS,
        outer_radius: int = DEFAULT_OUTER_RADIUS,
        fan_out: int = DEFAULT_FAN_OUT,
    ) -> None:
        self.sample_rate = sample_rate
        self.window_size = window_size
        # 50% overlap by default
        self.hop_size = hop_size
        self.threshold = threshold
        self.inner_radius = inner_radius
        self.outer_radius = outer_radius
        self.fan_out = fan_out
        # Bookkeeping across processed files
        self.soundfiledur = 0.0
        self.soundfiletotaldur = 0.0
        self.soundfilecount = 0
        self.check_params()

    def check_params(self) -> None:
        """Raise ValueError if the current configuration is unusable."""
        if int(self.sample_rate) != self.sample_rate or self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be a positive integer, not {self.sample_rate}")
        check_frame_params(self.window_size, self.hop_size)
        if self.inner_radius < 1:
            raise ValueError(f"inner_radius must be at least 1, not {self.inner_radius}")
        if self.outer_radius < 0:
            raise ValueError("outer_radius must be non-negative")
        if self.fan_out < 1:
            raise ValueError(f"fan_out must be at least 1, not {self.fan_out}")

    def analyze(self, samples: Sequence[float] | np.ndarray) -> np.ndarray:
        """Magnitude spectrogram of samples under this analyzer's framing."""
        self.check_params()
        spec = spectrogram(samples, self.window_size, self.hop_size)
        logger.debug("spectrogram: %d frames x %d bins", spec.shape[0], spec.shape[1])
        return spec

    def extract_peaks(self, spec: np.ndarray) -> list[Peak]:
        peaks = extract_peaks(spec, self.sample_rate, self.window_size, self.hop_size,
                              self.threshold, self.inner_radius, self.outer_radius)
        logger.debug("found %d peaks", len(peaks))
        return peaks

    def generate_hashes(self, peaks: Sequence[Peak]) -> list[int]:
        return generate_hashes(peaks, self.fan_out)

    def process_audio(self, samples: Sequence[float] | np.ndarray) -> Fingerprint:
        """Run the full pipeline on one mono sample array."""
        peaks = self.extract_peaks(self.analyze(samples))
        hashes = self.generate_hashes(peaks)
        logger.debug("%d peaks -> %d hashes", len(peaks), len(hashes))
        return Fingerprint(tuple(peaks), tuple(hashes))

    def wavfile2fingerprint(self, filename: str) -> Fingerprint:
        """Read a wav file at self.sample_rate and fingerprint it."""
        data, sr = audio.audio_read(filename, sr=self.sample_rate, channels=1)
        self.soundfiledur = len(data) / float(sr)
        self.soundfiletotaldur += self.soundfiledur
        self.soundfilecount += 1
        fprint = self.process_audio(data)
        logger.debug(
            f"{time.ctime()} read {filename} ({self.soundfiledur:.3f} s) -> "
            f"{len(fprint.peaks)} peaks, {len(fprint)} hashes"
        )
        return fprint
