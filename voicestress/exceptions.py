"""
Error taxonomy for the voice stress pipeline.

Only PermissionDenied ends a monitoring session. Everything else is
recovered from inside the loop.
"""


class VoiceStressError(Exception):
    """Base class for pipeline errors"""


class PermissionDenied(VoiceStressError):
    """Microphone access is not available"""


class CaptureFailed(VoiceStressError):
    """Recording could not be started or read for one tick"""


class FeatureExtractionFailed(VoiceStressError):
    """Sample buffer could not be turned into features"""


class ModelLoadFailed(VoiceStressError):
    """Emotion model missing or the inference runtime failed to start"""


ModelUnavailable = ModelLoadFailed


class InferenceFailed(VoiceStressError):
    """Emotion model raised or timed out for one tick"""
