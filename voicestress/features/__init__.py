from .signal_features import (
    rms, volume_from_rms, zero_crossing_rate, estimate_pitch,
    spectral_centroid, energy_variance,
    estimate_speech_rate, mfcc_like, default_mfcc
)
from .voice_activity import is_silent, has_voice_activity
