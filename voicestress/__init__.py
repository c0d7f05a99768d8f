"""
On-device Voice Stress Detection

Samples short windows of microphone audio, extracts acoustic features,
classifies a stress level and hands it to the crisis intervention workflow.
Raw audio never leaves the analysing tick.

Components:
- Audio capture of fixed-duration clips
- Feature extraction (RMS, ZCR, pitch, spectral centroid, energy variance, MFCCs)
- Voice activity gate
- Rule-based and optional TFLite emotion-model stress classifiers
- Monitoring controller and crisis intervention contract
"""

from .config import *
from .exceptions import (
    VoiceStressError, PermissionDenied, CaptureFailed, FeatureExtractionFailed,
    ModelLoadFailed, ModelUnavailable, InferenceFailed
)
from .results import StressLevel, VoiceAnalysisResult
from .audio_capture import AudioCapture
from .analysis import VoiceAnalyzer
from .classifier import StressClassifier, RuleBasedStressClassifier, AIStressClassifier
from .monitoring import MonitoringController, MonitoringState
from .crisis import CrisisActions, CrisisInterventionHandler, InterventionPlan

__version__ = "1.0.0"
