from .inference import EmotionModelInterpreter
