"""
Signal feature extraction for voice stress detection
Pure functions over a mono PCM buffer normalised to [-1, 1]
"""

import logging

import librosa
import numpy as np
from scipy import signal
from scipy.fft import dct

from ..config import (
    SAMPLE_RATE, ENERGY_FRAME_SIZE, N_MFCC, N_MEL_FILTERS,
    MFCC_FRAME_SIZE, MFCC_HOP_LENGTH, DEFAULT_MFCC_FRAMES,
    PITCH_MIN_HZ, PITCH_MAX_HZ, VOICE_BAND_MIN_HZ, VOICE_BAND_MAX_HZ,
    NEUTRAL_PITCH_HZ, PITCH_CORRELATION_THRESHOLD, PITCH_PEAK_TOLERANCE,
    SPEECH_RATE_ZCR_RANGE, SPEECH_RATE_VARIANCE_RANGE,
    MIN_SPEECH_RATE, MAX_SPEECH_RATE
)

logger = logging.getLogger(__name__)


def _as_samples(samples):
    return np.asarray(samples, dtype=np.float64).ravel()


def rms(samples):
    """Root-mean-square amplitude"""
    samples = _as_samples(samples)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples ** 2)))


def volume_from_rms(rms_value):
    """Map RMS onto the 0-100 volume scale"""
    return float(min(100.0, rms_value * 100.0))


def zero_crossing_rate(samples):
    """
    Fraction of adjacent sample pairs that change sign.
    Zero counts as positive.
    """
    samples = _as_samples(samples)
    if samples.size < 2:
        return 0.0

    positive = samples >= 0
    crossings = np.count_nonzero(positive[1:] != positive[:-1])
    return crossings / samples.size


def estimate_pitch(samples, sample_rate=SAMPLE_RATE):
    """
    Estimate the fundamental frequency with normalised autocorrelation

    The search covers lags for 50-500 Hz. The first correlation peak that
    reaches 97% of the strongest one is taken as the period. Weak
    correlation (< 0.3) or a result outside the 80-500 Hz voice band
    returns the neutral pitch instead of an unreliable estimate.

    Args:
        samples: mono audio samples
        sample_rate: sampling rate in Hz

    Returns:
        float: pitch in Hz, within [80, 500] or exactly NEUTRAL_PITCH_HZ
    """
    samples = _as_samples(samples)
    n = samples.size
    min_lag = int(sample_rate // PITCH_MAX_HZ)
    max_lag = min(int(sample_rate // PITCH_MIN_HZ), n // 2)

    if min_lag < 1 or max_lag <= min_lag:
        return NEUTRAL_PITCH_HZ

    # full[n - 1 + k] = sum(x[i] * x[i + k])
    full = signal.fftconvolve(samples, samples[::-1], mode="full")
    lags = np.arange(min_lag, max_lag)
    products = full[n - 1 + lags]

    cumulative = np.cumsum(samples ** 2)
    head_energy = cumulative[n - 1 - lags]
    tail_energy = cumulative[-1] - cumulative[lags - 1]
    denominator = np.sqrt(head_energy * tail_energy)

    correlation = np.zeros_like(products)
    np.divide(products, denominator, out=correlation, where=denominator > 1e-12)

    best = float(np.max(correlation))
    if not np.isfinite(best) or best < PITCH_CORRELATION_THRESHOLD:
        return NEUTRAL_PITCH_HZ

    peaks, _ = signal.find_peaks(correlation, height=PITCH_PEAK_TOLERANCE * best)
    best_index = int(peaks[0]) if len(peaks) > 0 else int(np.argmax(correlation))

    pitch = sample_rate / lags[best_index]
    if VOICE_BAND_MIN_HZ <= pitch <= VOICE_BAND_MAX_HZ:
        return float(pitch)
    return NEUTRAL_PITCH_HZ


def spectral_centroid(samples, sample_rate=SAMPLE_RATE):
    """
    Magnitude-weighted mean frequency of a Hann-windowed FFT frame.
    The frame is the largest power of two that fits in the buffer.
    """
    samples = _as_samples(samples)
    if samples.size < 2:
        return 0.0

    fft_size = 2 ** int(np.floor(np.log2(samples.size)))
    frame = samples[:fft_size] * np.hanning(fft_size)

    magnitudes = np.abs(np.fft.rfft(frame))
    frequencies = np.fft.rfftfreq(fft_size, d=1.0 / sample_rate)

    total = float(np.sum(magnitudes))
    if total <= 0:
        return 0.0
    return float(np.sum(frequencies * magnitudes) / total)


def energy_variance(samples, frame_size=ENERGY_FRAME_SIZE):
    """
    Standard deviation of per-frame mean energy.
    Higher values mean a burstier energy envelope.
    """
    samples = _as_samples(samples)
    n_frames = samples.size // frame_size
    if n_frames < 2:
        return 0.0

    frames = samples[:n_frames * frame_size].reshape(n_frames, frame_size)
    energies = np.mean(frames ** 2, axis=1)
    return float(np.std(energies))


def estimate_speech_rate(zcr, energy_var):
    """
    Approximate words-per-second from ZCR and energy variance

    This is a heuristic proxy, not a word-rate detector: both inputs are
    normalised against typical speech ranges and combined linearly.
    """
    zcr_low, zcr_high = SPEECH_RATE_ZCR_RANGE
    var_low, var_high = SPEECH_RATE_VARIANCE_RANGE

    normalized_zcr = np.clip((zcr - zcr_low) / (zcr_high - zcr_low), 0.0, 1.0)
    normalized_variance = np.clip((energy_var - var_low) / (var_high - var_low), 0.0, 1.0)

    rate = 2.0 + 2.0 * normalized_zcr + 1.5 * normalized_variance
    return float(np.clip(rate, MIN_SPEECH_RATE, MAX_SPEECH_RATE))


def default_mfcc():
    """Zero block used when MFCC extraction yields nothing"""
    return np.zeros((DEFAULT_MFCC_FRAMES, N_MFCC), dtype=np.float32)


def mfcc_like(samples, sample_rate=SAMPLE_RATE):
    """
    MFCC-like coefficients, one 13-element vector per frame

    Hamming-windowed frames of 2048 samples (hop 512) go through an FFT,
    a 26-band triangular mel filterbank on the HTK mel scale, a log and a
    DCT-II. Failures return default_mfcc() so the monitoring loop never
    sees an exception from here.

    Returns:
        numpy array of shape (n_frames, 13)
    """
    try:
        samples = _as_samples(samples).astype(np.float32)
        if samples.size < MFCC_FRAME_SIZE:
            return default_mfcc()

        frames = librosa.util.frame(
            samples,
            frame_length=MFCC_FRAME_SIZE,
            hop_length=MFCC_HOP_LENGTH,
            axis=0
        )
        windowed = frames * np.hamming(MFCC_FRAME_SIZE)
        magnitudes = np.abs(np.fft.rfft(windowed, axis=1))

        mel_basis = librosa.filters.mel(
            sr=sample_rate,
            n_fft=MFCC_FRAME_SIZE,
            n_mels=N_MEL_FILTERS,
            fmin=0.0,
            fmax=sample_rate / 2.0,
            htk=True,
            norm=None
        )
        mel_energies = magnitudes @ mel_basis.T
        log_energies = np.log(mel_energies + 1e-10)

        coefficients = dct(log_energies, type=2, axis=1, norm="ortho")[:, :N_MFCC]
        if coefficients.shape[0] == 0 or not np.all(np.isfinite(coefficients)):
            return default_mfcc()

        return coefficients.astype(np.float32)

    except Exception as e:
        logger.warning(f"MFCC extraction failed: {e}")
        return default_mfcc()
