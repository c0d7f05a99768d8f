"""
Stress classification strategies

RuleBasedStressClassifier is always available. AIStressClassifier wraps the
optional emotion model and is only consulted when StressClassifier managed to
load it and the model is confident enough.
"""

import asyncio
import logging

from .config import (
    SAMPLE_RATE, MODEL_PATH, MODEL_CONFIDENCE_THRESHOLD,
    INFERENCE_TIMEOUT_SECONDS, StressThresholds
)
from .engine.inference import EmotionModelInterpreter
from .exceptions import ModelLoadFailed
from .features.signal_features import mfcc_like
from .results import StressLevel, AIPrediction

logger = logging.getLogger(__name__)

# (indicator attribute, weight, message) in detection order
INDICATOR_RULES = [
    ("shouting", 3, "Elevated voice volume detected"),
    ("rapid_speech", 2, "Rapid speech pattern detected"),
    ("high_pitch", 2, "Elevated pitch detected"),
    ("irregular_pattern", 1, "Irregular speech pattern detected"),
]

# (minimum score, level, confidence cap, divisor)
RULE_BANDS = [
    (6, "crisis", 0.9, 8),
    (4, "high", 0.8, 6),
    (2, "moderate", 0.7, 4),
    (1, "mild", 0.6, 2),
]
CALM_CONFIDENCE = 0.1

# (exclusive lower bound, level)
AI_BANDS = [
    (2.5, "crisis"),
    (1.5, "high"),
    (0.8, "moderate"),
    (0.3, "mild"),
]
AI_EMOTION_WEIGHTS = {"stressed": 3, "angry": 3, "fearful": 2, "sad": 1}


def level_from_rule_score(score):
    """Map a rule-based stress score to (level, confidence)"""
    for min_score, level, cap, divisor in RULE_BANDS:
        if score >= min_score:
            return level, min(cap, score / divisor)
    return "calm", CALM_CONFIDENCE


def level_from_emotion_score(score):
    for lower_bound, level in AI_BANDS:
        if score > lower_bound:
            return level
    return "calm"


class RuleBasedStressClassifier:
    """Weighted sum of the boolean stress indicators"""

    def __init__(self, thresholds=None):
        self.thresholds = thresholds or StressThresholds()

    @staticmethod
    def stress_score(stress_indicators):
        score = 0
        indicators = []
        for attribute, weight, message in INDICATOR_RULES:
            if getattr(stress_indicators, attribute):
                indicators.append(message)
                score += weight
        return score, indicators

    def classify(self, analysis, timestamp=None):
        score, indicators = self.stress_score(analysis.stress_indicators)
        level, confidence = level_from_rule_score(score)

        kwargs = {} if timestamp is None else {"timestamp": timestamp}
        return StressLevel(level=level, confidence=confidence, indicators=indicators, **kwargs)


class AIStressClassifier:
    """Scores the emotion distribution predicted by the model"""

    def __init__(self, interpreter, thresholds=None):
        self.interpreter = interpreter
        self.thresholds = thresholds or StressThresholds()

    def predict(self, mfcc_features):
        result = self.interpreter.predict(mfcc_features)
        emotions = tuple(float(p) for p in result['probabilities'])
        return AIPrediction(emotions=emotions, model_confidence=max(emotions))

    def classify(self, analysis, timestamp=None):
        prediction = analysis.ai_prediction
        emotions = prediction.as_dict()

        score = sum(emotions[name] * weight for name, weight in AI_EMOTION_WEIGHTS.items())

        trigger = self.thresholds.ai_emotion_trigger
        indicators = []
        if emotions["stressed"] > trigger:
            indicators.append("AI detected stressed voice patterns")
        if emotions["angry"] > trigger:
            indicators.append("AI detected anger in voice")
        if emotions["fearful"] > trigger:
            indicators.append("AI detected fear in voice")
        if analysis.volume > self.thresholds.ai_volume_trigger:
            indicators.append("Elevated voice volume")
        if analysis.speech_rate > self.thresholds.ai_speech_rate_trigger:
            indicators.append("Rapid speech detected")

        kwargs = {} if timestamp is None else {"timestamp": timestamp}
        return StressLevel(
            level=level_from_emotion_score(score),
            confidence=prediction.model_confidence,
            indicators=indicators,
            emotions=emotions,
            **kwargs
        )


class StressClassifier:
    """
    Selects the classification strategy for each clip

    Owns the single model_loaded flag. Loading is best-effort: a missing
    model file or runtime leaves the classifier in rule-based mode for
    the rest of its life.
    """

    def __init__(self, model_path=MODEL_PATH, thresholds=None, interpreter=None,
                 inference_timeout=INFERENCE_TIMEOUT_SECONDS, sample_rate=SAMPLE_RATE):
        self.thresholds = thresholds or StressThresholds()
        self.interpreter = interpreter or EmotionModelInterpreter(model_path)
        self.inference_timeout = inference_timeout
        self.sample_rate = sample_rate

        self.rule_based = RuleBasedStressClassifier(self.thresholds)
        self.ai = AIStressClassifier(self.interpreter, self.thresholds)

        self._model_loaded = False
        self.initialize_model()

    @property
    def model_loaded(self):
        return self._model_loaded

    def initialize_model(self):
        try:
            self.interpreter.load_model()
            self._model_loaded = True
            logger.info("AI emotion model loaded")
        except ModelLoadFailed as e:
            logger.info(f"No AI model available, using signal processing fallback ({e})")
            self._model_loaded = False
        return self._model_loaded

    async def predict_emotions(self, samples):
        """
        Run the emotion model on a clip

        Returns None when no model is loaded, or when inference fails or
        exceeds the timeout; the caller then uses the rule-based result.
        """
        if not self._model_loaded:
            return None

        features = mfcc_like(samples, self.sample_rate)
        loop = asyncio.get_running_loop()

        try:
            prediction = await asyncio.wait_for(
                loop.run_in_executor(None, self.ai.predict, features),
                timeout=self.inference_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"AI inference exceeded {self.inference_timeout:.2f}s, using rule-based result")
            return None
        except Exception as e:
            logger.warning(f"AI inference error, using rule-based result: {e}")
            return None

        logger.debug(f"AI prediction: {prediction.as_dict()}")
        return prediction

    def classify(self, analysis, timestamp=None):
        prediction = analysis.ai_prediction
        if (self._model_loaded and prediction is not None
                and prediction.model_confidence > MODEL_CONFIDENCE_THRESHOLD):
            return self.ai.classify(analysis, timestamp)

        return self.rule_based.classify(analysis, timestamp)
