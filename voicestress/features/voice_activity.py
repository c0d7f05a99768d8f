"""
Voice activity gate: keeps silence and background noise away from the classifier
"""

from ..config import StressThresholds

_DEFAULT_THRESHOLDS = StressThresholds()


def is_silent(volume, thresholds=_DEFAULT_THRESHOLDS):
    """Hard cutoff applied before any other feature is computed"""
    return volume < thresholds.silence_volume


def has_voice_activity(rms, zcr, spectral_centroid, thresholds=_DEFAULT_THRESHOLDS):
    """
    Decide whether a clip contains speech

    At least two of three must hold: enough energy, a zero-crossing rate
    in the typical speech band, a spectral centroid in the speech
    frequency band.
    """
    zcr_low, zcr_high = thresholds.vad_zcr_range
    centroid_low, centroid_high = thresholds.vad_centroid_range

    criteria = [
        rms > thresholds.vad_min_rms,
        zcr_low < zcr < zcr_high,
        centroid_low < spectral_centroid < centroid_high,
    ]
    return sum(criteria) >= 2
