"""
Value objects passed between pipeline stages
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .config import STRESS_LEVELS, EMOTION_CLASSES, NEUTRAL_PITCH_HZ


def now_ms():
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StressLevel:
    """
    Classification delivered to the stress-detected callback.

    emotions is only set when the emotion model produced the result.
    """

    level: str
    confidence: float
    indicators: Tuple[str, ...] = ()
    timestamp: int = field(default_factory=now_ms)
    emotions: Optional[Dict[str, float]] = None

    def __post_init__(self):
        if self.level not in STRESS_LEVELS:
            raise ValueError(f"Unknown stress level: {self.level}")
        object.__setattr__(self, "confidence", min(1.0, max(0.0, float(self.confidence))))
        object.__setattr__(self, "indicators", tuple(self.indicators))

    @property
    def severity(self):
        return STRESS_LEVELS.index(self.level)

    @property
    def is_crisis(self):
        return self.level == "crisis"


@dataclass(frozen=True)
class StressIndicators:
    shouting: bool = False
    rapid_speech: bool = False
    high_pitch: bool = False
    irregular_pattern: bool = False


@dataclass(frozen=True)
class RawMetrics:
    rms: float
    zcr: float
    spectral_centroid: float
    energy_variance: float


@dataclass(frozen=True)
class AIPrediction:
    emotions: Tuple[float, ...]
    model_confidence: float

    def as_dict(self):
        return dict(zip(EMOTION_CLASSES, self.emotions))


@dataclass
class VoiceAnalysisResult:
    """Per-clip analysis; created and discarded within one tick"""

    volume: float
    pitch: float
    speech_rate: float
    stress_indicators: StressIndicators
    raw_metrics: RawMetrics
    ai_prediction: Optional[AIPrediction] = None
    voiced: bool = True

    @classmethod
    def baseline(cls):
        """Calm result used for silence, noise and extraction failures"""
        return cls(
            volume=2.0,
            pitch=NEUTRAL_PITCH_HZ,
            speech_rate=2.0,
            stress_indicators=StressIndicators(),
            raw_metrics=RawMetrics(
                rms=0.02,
                zcr=0.05,
                spectral_centroid=1000.0,
                energy_variance=0.05
            ),
            voiced=False
        )
