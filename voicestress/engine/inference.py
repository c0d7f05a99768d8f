import logging
import os
import threading
import time

import numpy as np

from ..config import EMOTION_CLASSES, MODEL_PATH
from ..exceptions import ModelLoadFailed, InferenceFailed

logger = logging.getLogger(__name__)


class EmotionModelInterpreter:
    """
    Loads the optional TFLite emotion model and runs inference on MFCC features.
    Handles input/output quantization/dequantization.
    """
    def __init__(self, model_path=MODEL_PATH, emotion_classes=EMOTION_CLASSES):
        self.model_path = model_path
        self.emotion_classes = emotion_classes
        self.interpreter = None
        self.input_details = None
        self.output_details = None
        self.is_quantized_input = False
        self.is_quantized_output = False
        self._lock = threading.Lock()

    @property
    def is_loaded(self):
        return self.interpreter is not None

    def load_model(self):
        """
        Load the TFLite model. The TensorFlow runtime is only imported
        once a model file is known to exist.
        """
        if not os.path.exists(self.model_path):
            raise ModelLoadFailed(f"Model file not found: {self.model_path}")

        try:
            import tensorflow as tf
        except ImportError as e:
            raise ModelLoadFailed(f"TensorFlow Lite runtime not available: {e}") from e

        try:
            with open(self.model_path, 'rb') as f:
                tflite_model = f.read()

            interpreter = tf.lite.Interpreter(model_content=tflite_model)
            interpreter.allocate_tensors()
        except (OSError, ValueError, RuntimeError) as e:
            raise ModelLoadFailed(f"Could not initialise interpreter: {e}") from e

        self.interpreter = interpreter
        self.input_details = interpreter.get_input_details()
        self.output_details = interpreter.get_output_details()

        # Check quantization types
        self.is_quantized_input = self.input_details[0]['dtype'] == np.int8
        self.is_quantized_output = self._output_detail()['dtype'] == np.int8

        logger.info("Emotion model loaded successfully")
        logger.info(f"Input shape: {self.input_details[0]['shape']}")
        logger.info(f"Output shape: {self._output_detail()['shape']}")

    def _output_detail(self):
        # Prefer the tensor exported as "output"
        for detail in self.output_details:
            if 'output' in detail['name']:
                return detail
        return self.output_details[0]

    def _fit_to_input(self, features):
        """
        Flatten MFCC frames and pad/truncate to the model's input size
        """
        input_shape = self.input_details[0]['shape']
        expected = int(np.prod(input_shape))

        flat = np.asarray(features, dtype=np.float32).ravel()
        if flat.size > expected:
            flat = flat[:expected]
        elif flat.size < expected:
            flat = np.pad(flat, (0, expected - flat.size), mode='constant')

        return flat.reshape(input_shape)

    def predict(self, features):
        """
        Run inference on an MFCC feature block.
        Returns emotion probabilities and predicted class.
        """
        if self.interpreter is None:
            raise RuntimeError("Model not loaded. Call load_model() first.")

        input_data = self._fit_to_input(features)

        # Quantize input if needed (for int8 models)
        if self.is_quantized_input:
            input_scale, input_zero_point = self.input_details[0]['quantization']
            input_data = input_data / input_scale + input_zero_point
            input_data = np.clip(input_data, -128, 127).astype(np.int8)
        else:
            input_data = input_data.astype(self.input_details[0]['dtype'])

        output_detail = self._output_detail()

        try:
            with self._lock:
                self.interpreter.set_tensor(self.input_details[0]['index'], input_data)
                self.interpreter.invoke()
                output_data = self.interpreter.get_tensor(output_detail['index'])
        except (ValueError, RuntimeError) as e:
            raise InferenceFailed(str(e)) from e

        # Dequantize output if needed
        if self.is_quantized_output:
            output_scale, output_zero_point = output_detail['quantization']
            output_data = (output_data.astype(np.float32) - output_zero_point) * output_scale

        probabilities = np.asarray(output_data, dtype=np.float32).ravel()
        if probabilities.size != len(self.emotion_classes):
            raise InferenceFailed(
                f"Expected {len(self.emotion_classes)} outputs, got {probabilities.size}"
            )

        predicted_class_idx = int(np.argmax(probabilities))

        return {
            'probabilities': probabilities,
            'predicted_class': self.emotion_classes[predicted_class_idx],
            'confidence': float(probabilities[predicted_class_idx]),
            'class_index': predicted_class_idx
        }

    def get_model_info(self):
        """
        Get model information for monitoring.
        """
        if self.interpreter is None:
            return {"status": "Model not loaded"}

        output_detail = self._output_detail()
        return {
            "model_path": self.model_path,
            "input_shape": self.input_details[0]['shape'].tolist(),
            "output_shape": output_detail['shape'].tolist(),
            "input_dtype": str(self.input_details[0]['dtype']),
            "output_dtype": str(output_detail['dtype']),
            "quantized": self.is_quantized_input
        }

    def benchmark_latency(self, num_runs=100, max_latency_ms=300):
        """
        Benchmark model latency against the inference timeout.
        """
        if self.interpreter is None:
            raise RuntimeError("Model not loaded")

        input_shape = self.input_details[0]['shape']
        dummy_input = np.random.rand(*input_shape).astype(np.float32)

        latencies = []
        for _ in range(num_runs):
            start_time = time.perf_counter()
            self.predict(dummy_input)
            latencies.append((time.perf_counter() - start_time) * 1000)

        avg_latency = float(np.mean(latencies))
        max_latency = float(np.max(latencies))

        logger.info(f"Average latency: {avg_latency:.2f} ms")
        logger.info(f"Max latency: {max_latency:.2f} ms")

        return {
            'average_latency_ms': avg_latency,
            'max_latency_ms': max_latency,
            'meets_target': avg_latency < max_latency_ms
        }
