"""
Monitoring controller
Drives the capture -> extract -> gate -> classify loop and reports stress events
"""

import asyncio
import contextlib
import logging
from enum import Enum

from .analysis import VoiceAnalyzer
from .audio_capture import AudioCapture
from .classifier import StressClassifier
from .config import (
    SAMPLE_RATE, CLIP_DURATION_MS, ANALYSIS_INTERVAL_SECONDS,
    MODEL_PATH, StressThresholds
)
from .exceptions import PermissionDenied, CaptureFailed
from .results import now_ms

logger = logging.getLogger(__name__)

PERMISSION_ERROR_MESSAGE = "Microphone permission required for stress monitoring"


class MonitoringState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class MonitoringController:
    """
    Owns the monitoring session

    Ticks run strictly one after another on a single asyncio task, so
    captures never overlap and stress events arrive in capture order.
    Only a permission failure or stop_monitoring() ends a session; every
    other failure is absorbed by the tick it happened in.
    """

    def __init__(self, on_stress_detected, on_error, audio_capture=None,
                 classifier=None, analyzer=None, thresholds=None,
                 interval_seconds=ANALYSIS_INTERVAL_SECONDS,
                 clip_duration_ms=CLIP_DURATION_MS,
                 sample_rate=SAMPLE_RATE, model_path=MODEL_PATH):
        if clip_duration_ms / 1000.0 >= interval_seconds:
            raise ValueError("Clip duration must be shorter than the analysis interval")

        self.on_stress_detected = on_stress_detected
        self.on_error = on_error

        self.thresholds = thresholds or StressThresholds()
        self.sample_rate = sample_rate
        self.interval_seconds = interval_seconds
        self.clip_duration_ms = clip_duration_ms

        self.audio_capture = audio_capture or AudioCapture(sample_rate=sample_rate)
        self.analyzer = analyzer or VoiceAnalyzer(sample_rate, self.thresholds)
        self.classifier = classifier or StressClassifier(
            model_path=model_path,
            thresholds=self.thresholds,
            sample_rate=sample_rate
        )

        # Session state
        self.state = MonitoringState.IDLE
        self._task = None
        self._session_id = 0

        # Monitoring counters
        self.total_ticks = 0
        self.last_stress_level = None

    async def request_permissions(self):
        """
        Microphone pre-flight check, usable without starting monitoring
        """
        try:
            return bool(self.audio_capture.request_permissions())
        except Exception as e:
            logger.error(f"Failed to request microphone permissions: {e}")
            return False

    async def start_monitoring(self):
        if self.state is MonitoringState.RUNNING:
            return True
        if self.state is not MonitoringState.IDLE:
            logger.warning(f"Cannot start monitoring while {self.state.value}")
            return False

        self.state = MonitoringState.STARTING

        if not await self.request_permissions():
            self.state = MonitoringState.IDLE
            self.on_error(PERMISSION_ERROR_MESSAGE)
            return False

        try:
            self.audio_capture.configure_session()
        except PermissionDenied as e:
            self.state = MonitoringState.IDLE
            self.on_error(str(e))
            return False

        self._session_id += 1
        self.state = MonitoringState.RUNNING
        self._task = asyncio.create_task(self._monitor_loop(self._session_id))

        mode = "AI" if self.is_using_ai() else "Signal Processing"
        logger.info(f"Voice stress monitoring started ({mode} mode)")
        return True

    async def stop_monitoring(self):
        """
        Cancel the loop and release the microphone. Safe from any state.
        """
        if self.state is MonitoringState.IDLE and self._task is None:
            return
        if self.state is MonitoringState.STOPPING:
            return

        self.state = MonitoringState.STOPPING
        # Invalidate results still in flight for this session
        self._session_id += 1

        task, self._task = self._task, None
        self._abort_capture()

        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self.state = MonitoringState.IDLE
        logger.info("Voice stress monitoring stopped")

    def _abort_capture(self):
        try:
            self.audio_capture.abort()
        except Exception as e:
            logger.warning(f"Error aborting capture: {e}")

    def _is_active(self, session_id):
        return self.state is MonitoringState.RUNNING and session_id == self._session_id

    def _end_session(self, session_id):
        if session_id != self._session_id:
            return
        self._session_id += 1
        self._task = None
        self._abort_capture()
        self.state = MonitoringState.IDLE

    async def _monitor_loop(self, session_id):
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval_seconds

        while self._is_active(session_id):
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            if not self._is_active(session_id):
                break

            try:
                await self._tick(session_id)
            except Exception as e:
                logger.exception(f"Error in voice analysis tick: {e}")

            # An overrunning tick is followed by at most one immediate tick
            next_tick = max(next_tick + self.interval_seconds, loop.time())

    async def _tick(self, session_id):
        captured_at = now_ms()
        self.total_ticks += 1

        try:
            samples = await self.audio_capture.capture_clip(self.clip_duration_ms)
        except PermissionDenied as e:
            logger.error(f"Microphone access lost: {e}")
            self._end_session(session_id)
            self.on_error(str(e))
            return
        except CaptureFailed as e:
            logger.warning(f"Audio capture failed, waiting for next tick: {e}")
            self.on_error(str(e))
            return

        if not self._is_active(session_id):
            return

        stress_level = await self.analyze_clip(samples, captured_at)
        del samples

        if not self._is_active(session_id):
            return

        self.last_stress_level = stress_level
        if stress_level.level != "calm":
            self.on_stress_detected(stress_level)

    async def analyze_clip(self, samples, captured_at=None):
        """
        Run one full pipeline pass on a sample buffer
        """
        analysis = self.analyzer.perform_voice_analysis(samples)

        if analysis.voiced and self.classifier.model_loaded:
            analysis.ai_prediction = await self.classifier.predict_emotions(samples)

        stress_level = self.classifier.classify(analysis, timestamp=captured_at)

        logger.info(
            f"Voice analysis: volume={analysis.volume:.1f} "
            f"pitch={analysis.pitch:.1f}Hz "
            f"speech_rate={analysis.speech_rate:.1f}wps "
            f"level={stress_level.level} "
            f"confidence={stress_level.confidence:.0%} "
            f"mode={'AI' if stress_level.emotions is not None else 'Signal'}"
        )
        return stress_level

    def is_currently_monitoring(self):
        return self.state is MonitoringState.RUNNING

    def is_using_ai(self):
        return self.classifier.model_loaded

    def get_status(self):
        """
        Get current monitoring status
        """
        last = self.last_stress_level
        return {
            "state": self.state.value,
            "is_monitoring": self.is_currently_monitoring(),
            "using_ai": self.is_using_ai(),
            "total_ticks": self.total_ticks,
            "last_level": last.level if last else None,
            "model_info": self.classifier.interpreter.get_model_info()
        }
