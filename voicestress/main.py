"""
Command line interface for the voice stress monitor
Runs live monitoring, analyses recorded clips, and benchmarks the emotion model
"""

import argparse
import asyncio
import logging
import sys

from .audio_capture import load_clip
from .classifier import StressClassifier
from .config import MODEL_PATH, SAMPLE_RATE, ANALYSIS_INTERVAL_SECONDS, CLIP_DURATION_MS
from .crisis import CrisisActions, CrisisInterventionHandler
from .engine.inference import EmotionModelInterpreter
from .exceptions import ModelLoadFailed
from .monitoring import MonitoringController

# -------------------------------------------------------------------
# Logging configuration
# -------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _print_plan(plan):
    level = plan.stress_level
    banner = "*** CRISIS ***" if plan.urgent else f"[{level.level.upper()}]"
    print(f"\n{banner} {plan.message} ({level.confidence:.0%})")
    for indicator in level.indicators:
        print(f"    - {indicator}")
    if level.emotions:
        summary = ", ".join(f"{name} {p:.0%}" for name, p in level.emotions.items())
        print(f"    Emotions: {summary}")
    print(f"    {plan.support_text}")
    print(f"    Actions: {', '.join(plan.actions)}\n")


def _console_actions():
    return CrisisActions(
        dismiss=lambda: print("Dismissed"),
        start_breathing_exercise=lambda: print("Starting breathing exercise"),
        talk_to_guide=lambda: print("Opening guide chat"),
        call_emergency=lambda: print("Calling emergency services"),
    )


class VoiceStressApp:
    """
    Main application class for the voice stress monitor
    """

    def __init__(self, model_path=MODEL_PATH, interval=ANALYSIS_INTERVAL_SECONDS,
                 clip_duration_ms=CLIP_DURATION_MS):
        self.model_path = model_path
        self.interval = interval
        self.clip_duration_ms = clip_duration_ms
        self.controller = None

    # -------------------------------------------------------------------
    # Run live monitor
    # -------------------------------------------------------------------
    def run_monitor(self):
        try:
            asyncio.run(self._monitor())
        except KeyboardInterrupt:
            print("\n[*] Stopping...")

    async def _monitor(self):
        handler = CrisisInterventionHandler(_console_actions(), present=_print_plan)
        self.controller = MonitoringController(
            on_stress_detected=handler.handle,
            on_error=lambda message: logger.error(f"Voice monitoring error: {message}"),
            interval_seconds=self.interval,
            clip_duration_ms=self.clip_duration_ms,
            model_path=self.model_path,
        )

        if not await self.controller.start_monitoring():
            return

        print("\n[*] Listening for voice stress...")
        print("[*] Press Ctrl+C to stop\n")

        try:
            while self.controller.is_currently_monitoring():
                await asyncio.sleep(1)
        finally:
            await self.controller.stop_monitoring()

    # -------------------------------------------------------------------
    # Analyse a recorded clip
    # -------------------------------------------------------------------
    def analyze_file(self, path):
        samples = load_clip(path, SAMPLE_RATE)
        classifier = StressClassifier(model_path=self.model_path)
        controller = MonitoringController(
            on_stress_detected=lambda level: None,
            on_error=lambda message: logger.error(message),
            classifier=classifier,
        )

        stress_level = asyncio.run(controller.analyze_clip(samples))
        del samples

        print(f"Level: {stress_level.level.upper()} ({stress_level.confidence:.0%})")
        for indicator in stress_level.indicators:
            print(f"  - {indicator}")
        print(f"Mode: {'AI' if controller.is_using_ai() else 'Signal Processing'}")
        return stress_level

    # -------------------------------------------------------------------
    # Benchmark model
    # -------------------------------------------------------------------
    def benchmark_model(self, num_runs=100):
        print("Benchmarking emotion model")
        print("==========================")

        interpreter = EmotionModelInterpreter(self.model_path)
        try:
            interpreter.load_model()
        except ModelLoadFailed as e:
            logger.error(f"Benchmarking failed: {e}")
            raise

        latency_results = interpreter.benchmark_latency(num_runs=num_runs)

        print("\nLatency Results:")
        print(f"Average latency: {latency_results['average_latency_ms']:.2f} ms")
        print(f"Max latency: {latency_results['max_latency_ms']:.2f} ms")
        print(f"Within inference timeout: {'yes' if latency_results['meets_target'] else 'no'}")

        model_info = interpreter.get_model_info()
        print("\nModel Information:")
        print(f"Input shape: {model_info['input_shape']}")
        print(f"Output shape: {model_info['output_shape']}")
        print(f"Quantized: {'yes' if model_info.get('quantized') else 'no'}")

        return latency_results


# -------------------------------------------------------------------
# Entry point
# -------------------------------------------------------------------
def main(argv=None):
    parser = argparse.ArgumentParser(
        description="On-device voice stress monitor"
    )
    parser.add_argument(
        "command",
        choices=["run", "analyze", "benchmark"],
        help="Command to execute",
    )
    parser.add_argument(
        "path",
        nargs="?",
        help="Audio file to analyze (analyze command)",
    )
    parser.add_argument(
        "--model",
        default=MODEL_PATH,
        help=f"Emotion model path (default: {MODEL_PATH})",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=ANALYSIS_INTERVAL_SECONDS,
        help=f"Seconds between analyses (default: {ANALYSIS_INTERVAL_SECONDS})",
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=100,
        help="Benchmark iterations (default: 100)",
    )

    args = parser.parse_args(argv)

    if args.command == "run" and args.interval * 1000 <= CLIP_DURATION_MS:
        parser.error(f"--interval must be longer than the {CLIP_DURATION_MS} ms clip")

    app = VoiceStressApp(model_path=args.model, interval=args.interval)

    if args.command == "run":
        app.run_monitor()
    elif args.command == "analyze":
        if not args.path:
            parser.error("analyze requires an audio file path")
        app.analyze_file(args.path)
    elif args.command == "benchmark":
        app.benchmark_model(args.runs)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
