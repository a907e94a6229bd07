# coding=utf-8
"""audio_read reads a whole PCM wav file as normalized float samples.

Only wav input is supported, and it must already be at the analysis
sample rate: there is no resampling and no codec decoding here.
"""

import numpy as np
import scipy.io.wavfile as wav  # type: ignore[import-untyped]


def pcm_to_float(wave_data: np.ndarray, dtype: np.dtype | type = np.float64) -> np.ndarray:
    """Scale integer PCM into [-1, 1] by the format's maximum magnitude.

    Signed ints are divided by their largest positive value (32767 for
    16-bit), unsigned 8-bit is re-centred on 128 first, float data is
    passed through. The result is clipped to [-1, 1].
    """
    data = np.asarray(wave_data)
    if np.issubdtype(data.dtype, np.floating):
        scaled = data.astype(dtype)
    elif data.dtype == np.uint8:
        scaled = (data.astype(dtype) - 128.0) / 127.0
    elif np.issubdtype(data.dtype, np.signedinteger):
        scaled = data.astype(dtype) / float(np.iinfo(data.dtype).max)
    else:
        raise ValueError(f"Unsupported sample format {data.dtype}")
    return np.clip(scaled, -1.0, 1.0)


def wavread(filename: str) -> tuple[np.ndarray, int]:
    """Read in audio data from a wav file.  Return d, sr."""
    samplerate, wave_data = wav.read(filename)
    return pcm_to_float(wave_data), samplerate


def audio_read(
    filename: str,
    sr: int | None = None,
    channels: int | None = None,
) -> tuple[np.ndarray, int]:
    """Read a soundfile, return (d, sr).

    With channels=1, multichannel data is averaged down to mono.
    Raises ValueError if sr is given and differs from the file's rate.
    """
    data, samplerate = wavread(filename)
    if channels == 1 and data.ndim == 2:
        # Convert stereo to mono.
        data = np.mean(data, axis=-1)
    if sr and sr != samplerate:
        raise ValueError("Wav file has samplerate %d but %d requested." % (samplerate, sr))
    return data, samplerate
