# coding=utf-8
"""
stft.py

Framing and windowing helpers for the magnitude spectrogram.
"""

import numpy as np


def periodic_hann(window_length: int) -> np.ndarray:
    """Periodic Hann window, w[j] = 0.5 * (1 - cos(2 pi j / N)).

    Unlike np.hanning this does not repeat the end point, so
    w[0] == 0 and the peak of 1.0 falls at j == N/2.
    """
    return 0.5 - (0.5 * np.cos(2 * np.pi / window_length * np.arange(window_length)))


def frame(data: np.ndarray, window_length: int, hop_length: int) -> np.ndarray:
    """Convert a 1-D array into a 2-D array of overlapping frames.

    Row i is data[i * hop_length : i * hop_length + window_length].
    Trailing samples that don't fill a whole frame are dropped; input
    shorter than one window gives a (0, window_length) array.
    """
    num_samples = data.shape[0]
    if num_samples < window_length:
        return np.zeros((0, window_length), dtype=data.dtype)
    num_frames = 1 + ((num_samples - window_length) // hop_length)
    shape = (num_frames, window_length) + data.shape[1:]
    strides = (data.strides[0] * hop_length,) + data.strides
    return np.lib.stride_tricks.as_strided(data, shape=shape, strides=strides, writeable=False)


def magnitude_frames(frames: np.ndarray, n_bins: int) -> np.ndarray:
    """Hann-taper each row of frames and return |DFT| of the first n_bins."""
    window_length = frames.shape[1]
    if frames.shape[0] == 0:
        return np.zeros((0, n_bins))
    windowed = frames * periodic_hann(window_length)
    # rfft gives N/2 + 1 bins; the Nyquist bin is dropped.
    return np.abs(np.fft.rfft(windowed, n=window_length, axis=1))[:, :n_bins]
