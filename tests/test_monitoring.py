"""Tests for the MonitoringController lifecycle and tick loop."""

import asyncio

import numpy as np
import pytest

from voicestress.classifier import StressClassifier
from voicestress.exceptions import CaptureFailed, PermissionDenied
from voicestress.monitoring import MonitoringController, MonitoringState

from conftest import FakeAudioCapture, make_stressed_clip, make_calm_speech, make_stub_interpreter


class Recorder:
    """Collects callback invocations."""

    def __init__(self):
        self.stress_events = []
        self.errors = []

    def on_stress_detected(self, stress_level):
        self.stress_events.append(stress_level)

    def on_error(self, message):
        self.errors.append(message)


async def wait_until(condition, timeout=3.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def rule_classifier(missing_model_path):
    return StressClassifier(model_path=missing_model_path)


def make_controller(recorder, capture, classifier, interval=0.05, clip_ms=20):
    return MonitoringController(
        on_stress_detected=recorder.on_stress_detected,
        on_error=recorder.on_error,
        audio_capture=capture,
        classifier=classifier,
        interval_seconds=interval,
        clip_duration_ms=clip_ms,
    )


class TestLifecycle:
    """Start/stop state machine."""

    def test_clip_must_be_shorter_than_interval(self, recorder, rule_classifier):
        with pytest.raises(ValueError):
            make_controller(recorder, FakeAudioCapture(), rule_classifier, interval=1.0, clip_ms=1000)

    def test_permission_denied(self, recorder, rule_classifier):
        capture = FakeAudioCapture(permission=False)
        controller = make_controller(recorder, capture, rule_classifier)

        started = asyncio.run(controller.start_monitoring())

        assert started is False
        assert controller.state is MonitoringState.IDLE
        assert not controller.is_currently_monitoring()
        assert recorder.errors == ["Microphone permission required for stress monitoring"]
        assert capture.configure_calls == 0

    def test_request_permissions_without_starting(self, recorder, rule_classifier):
        controller = make_controller(recorder, FakeAudioCapture(), rule_classifier)

        assert asyncio.run(controller.request_permissions()) is True
        assert controller.state is MonitoringState.IDLE

    def test_start_twice_keeps_one_session(self, recorder, rule_classifier):
        capture = FakeAudioCapture()
        controller = make_controller(recorder, capture, rule_classifier)

        async def scenario():
            assert await controller.start_monitoring()
            task = controller._task
            assert await controller.start_monitoring()
            assert controller._task is task
            await wait_until(lambda: capture.capture_calls >= 3)
            await controller.stop_monitoring()

        asyncio.run(scenario())

        assert capture.configure_calls == 1
        assert capture.max_active_captures == 1

    def test_stop_twice(self, recorder, rule_classifier):
        controller = make_controller(recorder, FakeAudioCapture(), rule_classifier)

        async def scenario():
            await controller.stop_monitoring()
            assert await controller.start_monitoring()
            await controller.stop_monitoring()
            await controller.stop_monitoring()

        asyncio.run(scenario())

        assert controller.state is MonitoringState.IDLE
        assert controller._task is None

    def test_concurrent_stop_blocks_restart_until_done(self, recorder, rule_classifier):
        capture = FakeAudioCapture()
        controller = make_controller(recorder, capture, rule_classifier, interval=0.3, clip_ms=200)

        async def scenario():
            await controller.start_monitoring()
            await wait_until(lambda: capture.active_captures == 1)

            first_stop = asyncio.create_task(controller.stop_monitoring())
            await asyncio.sleep(0)
            await controller.stop_monitoring()

            assert controller.state is MonitoringState.STOPPING
            assert not await controller.start_monitoring()
            await first_stop

        asyncio.run(scenario())

        assert controller.state is MonitoringState.IDLE
        assert capture.configure_calls == 1
        assert capture.abort_calls == 1

    def test_is_using_ai_follows_classifier(self, recorder, rule_classifier):
        controller = make_controller(recorder, FakeAudioCapture(), rule_classifier)
        assert not controller.is_using_ai()

        ai_classifier = StressClassifier(interpreter=make_stub_interpreter([0.2] * 5))
        controller = make_controller(recorder, FakeAudioCapture(), ai_classifier)
        assert controller.is_using_ai()


class TestTicks:
    """Capture, analysis and callback delivery."""

    def test_stress_is_reported(self, recorder, rule_classifier):
        capture = FakeAudioCapture(default=make_stressed_clip())
        controller = make_controller(recorder, capture, rule_classifier)

        async def scenario():
            await controller.start_monitoring()
            await wait_until(lambda: len(recorder.stress_events) >= 2)
            await controller.stop_monitoring()

        asyncio.run(scenario())

        assert all(event.level == "crisis" for event in recorder.stress_events)
        timestamps = [event.timestamp for event in recorder.stress_events]
        assert timestamps == sorted(timestamps)
        assert capture.max_active_captures == 1

    def test_calm_is_not_reported(self, recorder, rule_classifier):
        capture = FakeAudioCapture(default=make_calm_speech())
        controller = make_controller(recorder, capture, rule_classifier)

        async def scenario():
            await controller.start_monitoring()
            await wait_until(lambda: controller.total_ticks >= 3)
            await controller.stop_monitoring()

        asyncio.run(scenario())

        assert recorder.stress_events == []
        assert recorder.errors == []
        assert controller.last_stress_level.level == "calm"

    def test_capture_failure_is_transient(self, recorder, rule_classifier):
        capture = FakeAudioCapture(
            clips=[CaptureFailed("Could not start recording: busy")],
            default=make_stressed_clip()
        )
        controller = make_controller(recorder, capture, rule_classifier)

        async def scenario():
            await controller.start_monitoring()
            await wait_until(lambda: recorder.stress_events)
            assert controller.is_currently_monitoring()
            await controller.stop_monitoring()

        asyncio.run(scenario())

        assert recorder.errors == ["Could not start recording: busy"]
        assert recorder.stress_events[0].level == "crisis"

    def test_permission_lost_ends_session(self, recorder, rule_classifier):
        capture = FakeAudioCapture(clips=[PermissionDenied("Microphone access revoked")])
        controller = make_controller(recorder, capture, rule_classifier)

        async def scenario():
            await controller.start_monitoring()
            await wait_until(lambda: recorder.errors)
            await asyncio.sleep(0.2)

        asyncio.run(scenario())

        assert recorder.errors == ["Microphone access revoked"]
        assert controller.state is MonitoringState.IDLE
        assert capture.capture_calls == 1

    def test_no_delivery_after_stop(self, recorder, rule_classifier):
        capture = FakeAudioCapture(default=make_stressed_clip())
        controller = make_controller(recorder, capture, rule_classifier, interval=0.3, clip_ms=200)

        async def scenario():
            await controller.start_monitoring()
            await wait_until(lambda: capture.active_captures == 1)
            await controller.stop_monitoring()
            await asyncio.sleep(0.4)

        asyncio.run(scenario())

        assert recorder.stress_events == []
        assert capture.abort_calls == 1
        assert capture.capture_calls == 1

    def test_callback_error_does_not_stop_loop(self, rule_classifier):
        errors = []

        def failing_callback(stress_level):
            raise RuntimeError("ui unavailable")

        capture = FakeAudioCapture(default=make_stressed_clip())
        controller = MonitoringController(
            on_stress_detected=failing_callback,
            on_error=errors.append,
            audio_capture=capture,
            classifier=rule_classifier,
            interval_seconds=0.05,
            clip_duration_ms=20,
        )

        async def scenario():
            await controller.start_monitoring()
            await wait_until(lambda: controller.total_ticks >= 3)
            assert controller.is_currently_monitoring()
            await controller.stop_monitoring()

        asyncio.run(scenario())


class TestAnalyzeClip:
    """Single pipeline pass."""

    def test_ai_path(self, recorder):
        stub = make_stub_interpreter([0.1, 0.6, 0.2, 0.05, 0.05])
        controller = make_controller(recorder, FakeAudioCapture(), StressClassifier(interpreter=stub))

        stress = asyncio.run(controller.analyze_clip(make_calm_speech(), captured_at=42))

        assert stress.level == "crisis"
        assert stress.timestamp == 42
        assert stress.emotions["stressed"] == pytest.approx(0.6)

    def test_silence_skips_model(self, recorder):
        stub = make_stub_interpreter([0.1, 0.6, 0.2, 0.05, 0.05])
        controller = make_controller(recorder, FakeAudioCapture(), StressClassifier(interpreter=stub))

        stress = asyncio.run(controller.analyze_clip(np.zeros(44100, dtype=np.float32)))

        stub.predict.assert_not_called()
        assert stress.level == "calm"
        assert stress.emotions is None

    def test_unexpected_inference_error_uses_rules(self, recorder):
        stub = make_stub_interpreter([0.1, 0.6, 0.2, 0.05, 0.05])
        stub.predict.side_effect = TypeError("unexpected tensor type")
        classifier = StressClassifier(interpreter=stub)
        controller = make_controller(recorder, FakeAudioCapture(), classifier)

        stress = asyncio.run(controller.analyze_clip(make_stressed_clip()))

        stub.predict.assert_called_once()
        assert stress.level == "crisis"
        assert stress.emotions is None
        assert classifier.model_loaded
