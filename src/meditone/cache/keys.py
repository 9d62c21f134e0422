"""Content fingerprints for cached artifacts.

Each key is computed only from the inputs that change the output bytes, so
requests that differ in incidental formatting resolve to the same artifact.
"""

import hashlib
import math


def _digest(*parts: str) -> str:
    # NUL separators keep ("ab", "c") and ("a", "bc") apart
    input_string = "\x00".join(parts)
    return hashlib.sha256(input_string.encode("utf-8")).hexdigest()[:32]


def speech_cache_key(text: str, voice: str, model: str) -> str:
    """Fingerprint of a speech chunk from its text, voice and model.

    Raises:
        ValueError: If any input parameter is None
    """
    if text is None or voice is None or model is None:
        raise ValueError("All parameters (text, voice, model) must be non-None")
    return _digest(text.strip(), voice, model)


def merge_cache_key(speech_url: str, music_url: str, music_volume: float) -> str:
    """Fingerprint of a background-music mix.

    Callers pass URLs already reduced to their /audio/ or /music/ form. The
    speech volume is not part of the key: two mixes that differ only in
    speech gain share one cached file.
    """
    return _digest(speech_url, music_url, repr(float(music_volume)))


def silence_cache_key(seconds: float) -> float:
    """Round a pause length half-up to one decimal place.

    2.00 and 2.04 both map to 2.0; 2.06 maps to 2.1.
    """
    if seconds <= 0:
        raise ValueError(f"silence duration must be positive, got {seconds}")
    return math.floor(seconds * 10 + 0.5) / 10
