"""
Per-clip voice analysis: feature extraction, silence/voice gating and stress indicators
"""

import logging

import numpy as np

from .config import SAMPLE_RATE, StressThresholds
from .exceptions import FeatureExtractionFailed
from .features.signal_features import (
    rms, volume_from_rms, zero_crossing_rate, estimate_pitch,
    spectral_centroid, energy_variance, estimate_speech_rate
)
from .features.voice_activity import is_silent, has_voice_activity
from .results import VoiceAnalysisResult, StressIndicators, RawMetrics

logger = logging.getLogger(__name__)


def detect_stress_indicators(volume, pitch, speech_rate, energy_var, thresholds):
    return StressIndicators(
        shouting=volume > thresholds.shouting_volume,
        rapid_speech=speech_rate > thresholds.rapid_speech_rate,
        high_pitch=pitch > thresholds.high_pitch_hz,
        irregular_pattern=energy_var > thresholds.irregular_energy_variance,
    )


class VoiceAnalyzer:
    """
    Turns one captured clip into a VoiceAnalysisResult

    Never raises on bad audio: silence, non-speech and malformed buffers
    all come back as the calm baseline result.
    """

    def __init__(self, sample_rate=SAMPLE_RATE, thresholds=None):
        self.sample_rate = sample_rate
        self.thresholds = thresholds or StressThresholds()

    def perform_voice_analysis(self, samples):
        try:
            audio = self._prepare(samples)

            rms_value = rms(audio)
            volume = volume_from_rms(rms_value)

            if is_silent(volume, self.thresholds):
                logger.debug(f"Silence detected (volume {volume:.1f})")
                return VoiceAnalysisResult.baseline()

            zcr = zero_crossing_rate(audio)
            centroid = spectral_centroid(audio, self.sample_rate)

            if not has_voice_activity(rms_value, zcr, centroid, self.thresholds):
                logger.debug("No voice activity detected")
                return VoiceAnalysisResult.baseline()

            pitch = estimate_pitch(audio, self.sample_rate)
            energy_var = energy_variance(audio)
            speech_rate = estimate_speech_rate(zcr, energy_var)

            return VoiceAnalysisResult(
                volume=volume,
                pitch=pitch,
                speech_rate=speech_rate,
                stress_indicators=detect_stress_indicators(
                    volume, pitch, speech_rate, energy_var, self.thresholds
                ),
                raw_metrics=RawMetrics(
                    rms=rms_value,
                    zcr=zcr,
                    spectral_centroid=centroid,
                    energy_variance=energy_var
                )
            )

        except (FeatureExtractionFailed, ValueError, FloatingPointError) as e:
            logger.warning(f"Feature extraction failed, using baseline: {e}")
            return VoiceAnalysisResult.baseline()

    @staticmethod
    def _prepare(samples):
        if samples is None:
            raise FeatureExtractionFailed("No audio data available")

        audio = np.asarray(samples, dtype=np.float64).ravel()
        if audio.size == 0:
            raise FeatureExtractionFailed("No audio data available")
        if not np.all(np.isfinite(audio)):
            raise FeatureExtractionFailed("Audio buffer contains non-finite samples")

        return audio
