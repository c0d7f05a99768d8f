"""
Configuration constants for the on-device voice stress detection pipeline
"""

from dataclasses import dataclass

# Audio Configuration
SAMPLE_RATE = 44100  # Matches the mobile recording preset
CHANNELS = 1  # Mono
DTYPE = "float32"
CLIP_DURATION_MS = 3000  # Length of each analysed clip
ANALYSIS_INTERVAL_SECONDS = 5.0  # Cadence of the monitoring loop
CAPTURE_BLOCK_SIZE = 1024  # Frames per sounddevice callback

# Feature Extraction
ENERGY_FRAME_SIZE = 1024  # Frame size for energy variance
N_MFCC = 13  # Number of MFCC coefficients
N_MEL_FILTERS = 26  # Triangular mel filters
MFCC_FRAME_SIZE = 2048
MFCC_HOP_LENGTH = 512
DEFAULT_MFCC_FRAMES = 100  # Shape of the fallback MFCC block

# Pitch estimation
PITCH_MIN_HZ = 50  # Autocorrelation search range
PITCH_MAX_HZ = 500
VOICE_BAND_MIN_HZ = 80  # Accepted voice band
VOICE_BAND_MAX_HZ = 500
NEUTRAL_PITCH_HZ = 150.0
PITCH_CORRELATION_THRESHOLD = 0.3
PITCH_PEAK_TOLERANCE = 0.97  # First peak within this fraction of the strongest

# Speech rate heuristic (typical speech: ZCR 0.03-0.15, variance 0.05-0.3)
SPEECH_RATE_ZCR_RANGE = (0.03, 0.15)
SPEECH_RATE_VARIANCE_RANGE = (0.05, 0.30)
MIN_SPEECH_RATE = 1.0
MAX_SPEECH_RATE = 6.0

# Model Configuration
MODEL_PATH = "models/emotion_model.tflite"
EMOTION_CLASSES = ["calm", "stressed", "angry", "fearful", "sad"]
MODEL_CONFIDENCE_THRESHOLD = 0.5  # AI path is only trusted above this
INFERENCE_TIMEOUT_SECONDS = 0.3

# Stress levels in ascending severity
STRESS_LEVELS = ["calm", "mild", "moderate", "high", "crisis"]

# Crisis workflow
NOTIFICATION_COOLDOWN_SECONDS = 30.0
CRISIS_VIBRATION_PATTERN_MS = [0, 500, 200, 500]
CRISIS_CONTACTS = {
    "emergency": {"uri": "tel:911", "description": "Emergency Services"},
    "crisis_text_line": {"uri": "sms:741741", "description": "Crisis Text Line"},
}


@dataclass
class StressThresholds:
    """
    Calibration values for gating and scoring.
    Defaults are the stricter thresholds of the current detector.
    """

    # Voice activity gate
    silence_volume: float = 3.0
    vad_min_rms: float = 0.03
    vad_zcr_range: tuple = (0.02, 0.30)
    vad_centroid_range: tuple = (200.0, 5000.0)

    # Rule-based indicators
    shouting_volume: float = 70.0
    rapid_speech_rate: float = 5.0
    high_pitch_hz: float = 280.0
    irregular_energy_variance: float = 0.45

    # AI indicator triggers
    ai_emotion_trigger: float = 0.3
    ai_volume_trigger: float = 65.0
    ai_speech_rate_trigger: float = 4.5
