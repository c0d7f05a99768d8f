"""
Audio capture module for voice stress monitoring
Records fixed-duration clips through a callback stream and a thread-safe queue
"""

import asyncio
import logging
from queue import Queue, Empty, Full

import librosa
import numpy as np

from .config import SAMPLE_RATE, CHANNELS, DTYPE, CAPTURE_BLOCK_SIZE
from .exceptions import PermissionDenied, CaptureFailed

try:
    import sounddevice as sd
except OSError:
    # PortAudio shared library missing: no microphone on this host
    sd = None

logger = logging.getLogger(__name__)


class AudioCapture:
    """
    Owns the microphone while monitoring is running.
    One clip at a time; samples are handed over and not retained.
    """

    def __init__(self, sample_rate=SAMPLE_RATE, channels=CHANNELS):
        self.sample_rate = sample_rate
        self.channels = channels

        # Thread-safe queue for decoupling the PortAudio thread and the event loop
        self.audio_queue = Queue(maxsize=1024)

        self.stream = None
        self.session_configured = False
        self._aborted = False

    def request_permissions(self):
        """
        Pre-flight check that a usable input device exists
        """
        if sd is None:
            logger.warning("PortAudio library not found")
            return False

        try:
            device = sd.query_devices(kind='input')
        except (sd.PortAudioError, ValueError) as e:
            logger.warning(f"No input device available: {e}")
            return False

        return device is not None and device.get('max_input_channels', 0) > 0

    def configure_session(self):
        """
        One-time switch of sounddevice defaults to the recording format
        """
        if self.session_configured:
            return
        if sd is None:
            raise PermissionDenied("Microphone permission required for stress monitoring")

        sd.default.samplerate = self.sample_rate
        sd.default.channels = self.channels
        sd.default.dtype = DTYPE
        self.session_configured = True
        logger.info("Audio session configured for recording")

    def audio_callback(self, indata, frames, time_info, status):
        """
        Callback function for audio stream - runs in PortAudio thread
        """
        if status:
            logger.debug(f"Audio stream status: {status}")

        # Convert to mono if needed and flatten
        if self.channels == 1:
            audio_data = indata.flatten().copy()
        else:
            audio_data = np.mean(indata, axis=1)

        try:
            self.audio_queue.put_nowait(audio_data)
        except Full:
            logger.debug("Audio queue full, dropping block")

    async def capture_clip(self, duration_ms):
        """
        Record a clip of roughly duration_ms and return mono float32 samples

        Raises:
            PermissionDenied: no microphone access
            CaptureFailed: the stream could not be opened or started
        """
        if sd is None:
            raise PermissionDenied("Microphone permission required for stress monitoring")

        self._aborted = False
        self.clear_buffer()

        try:
            self.stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype=np.float32,
                callback=self.audio_callback,
                blocksize=CAPTURE_BLOCK_SIZE
            )
            self.stream.start()
        except sd.PortAudioError as e:
            self._close_stream()
            raise CaptureFailed(f"Could not start recording: {e}") from e

        try:
            await asyncio.sleep(duration_ms / 1000.0)
        finally:
            self._close_stream()

        return self._drain_queue()

    def abort(self):
        """
        Stop an in-flight capture without raising
        """
        self._aborted = True
        self._close_stream()
        self.clear_buffer()

    def _close_stream(self):
        stream, self.stream = self.stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning(f"Error closing audio stream: {e}")

    def _drain_queue(self):
        blocks = []
        while True:
            try:
                blocks.append(self.audio_queue.get_nowait())
            except Empty:
                break

        if self._aborted or not blocks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(blocks).astype(np.float32)

    def clear_buffer(self):
        """
        Drop any queued audio
        """
        while True:
            try:
                self.audio_queue.get_nowait()
            except Empty:
                break


def load_clip(path, sample_rate=SAMPLE_RATE):
    """
    Read an audio file as mono float samples at the pipeline sample rate
    """
    samples, _ = librosa.load(path, sr=sample_rate, mono=True)
    return samples.astype(np.float32)
