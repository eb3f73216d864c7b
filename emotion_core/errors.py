"""
Exception taxonomy for the recognition pipeline.

Load-time errors (ModelLoadError, DetectorLoadError) abort a run.
Per-face errors (InvalidInput, ModelInferenceError) only skip that face.
"""


class EmotionRecognitionError(RuntimeError):
    """Base class for pipeline errors."""


class ModelLoadError(EmotionRecognitionError):
    pass


class DetectorLoadError(EmotionRecognitionError):
    pass


class InvalidInput(EmotionRecognitionError, ValueError):
    """Empty or degenerate face crop."""


class ModelInferenceError(EmotionRecognitionError):
    """Shape mismatch or backend failure during a forward call."""
