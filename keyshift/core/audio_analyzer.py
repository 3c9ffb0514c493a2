# File: keyshift/core/audio_analyzer.py
"""Musical key estimation from raw mono PCM using a Goertzel resonator bank."""
import logging
from typing import Optional, Tuple

import numpy as np

from ..exceptions import KeyAnalysisError
from ..schemas.enums import KeyConfidence, KeyMode
from ..schemas.tracks import KeyEstimate

logger = logging.getLogger(__name__)

WINDOW_SIZE = 2048
HOP_SIZE = 1024  # 50% overlap

# C3..B5: three octaves of resonance targets
MIDI_LOW = 48
MIDI_HIGH = 83

HIGH_CONFIDENCE_SCORE = 0.5
HIGH_CONFIDENCE_SEPARATION = 0.05

# Krumhansl-Schmuckler key profiles for major and minor keys
# These represent the expected distribution of pitch classes for each key type
MAJOR_PROFILE = np.array([6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88])
MINOR_PROFILE = np.array([6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17])

_PROFILES = ((KeyMode.MAJOR, MAJOR_PROFILE), (KeyMode.MINOR, MINOR_PROFILE))


def hann_window(size: int = WINDOW_SIZE) -> np.ndarray:
    """Symmetric Hann window: w[n] = 0.5 * (1 - cos(2*pi*n / (N-1)))."""
    n = np.arange(size, dtype=np.float64)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * n / (size - 1)))


def resonance_targets(sample_rate: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build the 36 resonator targets.

    Returns:
        Tuple of (pitch_classes, coefficients), one element per MIDI note
        MIDI_LOW..MIDI_HIGH, where coefficient = 2*cos(2*pi*f / sample_rate).
    """
    midi = np.arange(MIDI_LOW, MIDI_HIGH + 1)
    freqs = 440.0 * np.power(2.0, (midi - 69) / 12.0)
    coeffs = 2.0 * np.cos(2.0 * np.pi * freqs / sample_rate)
    return midi % 12, coeffs


def compute_chroma(samples: np.ndarray, sample_rate: float) -> Optional[np.ndarray]:
    """
    Accumulate Goertzel power of every target over all analysis windows into
    a 12-bin chroma vector. Returns None when fewer than one window fits.
    """
    n_windows = 0 if len(samples) < WINDOW_SIZE else 1 + (len(samples) - WINDOW_SIZE) // HOP_SIZE
    if n_windows < 1:
        return None

    pitch_classes, coeffs = resonance_targets(sample_rate)
    window = hann_window(WINDOW_SIZE)

    # (windows, WINDOW_SIZE) view of the overlapping frames, Hann-weighted
    starts = np.arange(n_windows) * HOP_SIZE
    frames = samples[starts[:, None] + np.arange(WINDOW_SIZE)[None, :]] * window

    # All resonators over all windows run in lockstep: state shape (windows, targets)
    s1 = np.zeros((n_windows, len(coeffs)))
    s2 = np.zeros((n_windows, len(coeffs)))
    for i in range(WINDOW_SIZE):
        s0 = frames[:, i:i + 1] + coeffs * s1 - s2
        s2 = s1
        s1 = s0

    power = s1 * s1 + s2 * s2 - coeffs * s1 * s2
    per_target = power.sum(axis=0)

    chroma = np.zeros(12)
    np.add.at(chroma, pitch_classes, per_target)
    return chroma


def classify_confidence(best_score: float, second_best_score: float) -> KeyConfidence:
    separation = best_score - second_best_score
    if best_score >= HIGH_CONFIDENCE_SCORE and separation >= HIGH_CONFIDENCE_SEPARATION:
        return KeyConfidence.HIGH
    return KeyConfidence.LOW


def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    denom = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denom == 0.0:
        return 0.0
    return float(np.dot(a, b) / denom)


def match_key_profiles(chroma: np.ndarray) -> Tuple[int, KeyMode, float, float]:
    """
    Correlate a normalized chroma vector against all 24 rotated key profiles.

    Candidates are scanned tonic-then-mode; the first candidate to reach a
    score keeps it on ties.

    Returns:
        Tuple of (tonic_index, mode, best_score, second_best_score)
    """
    best_score = -np.inf
    second_best_score = -np.inf
    best_tonic = 0
    best_mode = KeyMode.MAJOR

    for tonic in range(12):
        for mode, profile in _PROFILES:
            # rotated[i] == profile[(i - tonic) mod 12]
            rotated = np.roll(profile, tonic)
            score = _cosine_similarity(chroma, rotated)

            if score > best_score:
                second_best_score = best_score
                best_score = score
                best_tonic = tonic
                best_mode = mode
            elif score > second_best_score:
                second_best_score = score

    return best_tonic, best_mode, best_score, second_best_score


def estimate_key(samples, sample_rate: float) -> Optional[KeyEstimate]:
    """
    Estimate the key of a mono signal.

    Args:
        samples: 1-D sequence of floats in [-1, 1]
        sample_rate: Sample rate of ``samples`` in Hz

    Returns:
        KeyEstimate, or None when the signal is too short, silent, or no
        template correlates positively.
    """
    signal = np.asarray(samples, dtype=np.float64)
    if signal.ndim != 1:
        raise KeyAnalysisError(f"Expected mono samples, got array of shape {signal.shape}")
    if not sample_rate or sample_rate <= 0:
        raise KeyAnalysisError(f"Invalid sample rate: {sample_rate}")

    chroma = compute_chroma(signal, sample_rate)
    if chroma is None:
        logger.debug(f"Signal too short for key analysis ({len(signal)} samples < {WINDOW_SIZE})")
        return None

    total = float(chroma.sum())
    if not np.isfinite(total) or total <= 0.0:
        logger.debug("Chroma energy is zero or non-finite. No key estimate.")
        return None
    chroma = chroma / total

    tonic, mode, best_score, second_best_score = match_key_profiles(chroma)
    if not np.isfinite(best_score) or best_score <= 0.0:
        return None

    confidence = classify_confidence(best_score, second_best_score)
    estimate = KeyEstimate(tonic_index=tonic, mode=mode, confidence=confidence, score=best_score)
    logger.info(
        f"Key estimate: {estimate.name} ({mode.value}), score={best_score:.3f}, "
        f"separation={best_score - second_best_score:.3f}, confidence={confidence.value}"
    )
    return estimate
