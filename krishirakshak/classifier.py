# krishirakshak/classifier.py
import asyncio
import logging
import threading
from pathlib import Path
from typing import Protocol, Sequence, Tuple

import numpy as np
from PIL import Image

from krishirakshak.errors import ModelLoadError, PredictionError
from krishirakshak.labels import LABELS

logger = logging.getLogger(__name__)

INPUT_SIZE = 224


class Scorer(Protocol):
    def predict(self, batch: np.ndarray): ...


class KerasScorer:
    """Adapts a Keras model to the Scorer protocol."""

    def __init__(self, model):
        self.model = model

    def predict(self, batch):
        return self.model.predict(batch, verbose=0)


def preprocess(image: Image.Image, size=INPUT_SIZE) -> np.ndarray:
    img_resized = image.convert("RGB").resize((size, size), Image.NEAREST)
    x = np.asarray(img_resized, dtype=np.float32) / 255.0
    return np.expand_dims(x, axis=0)


class Classifier:
    """
    Scores decoded images against the fixed label set.

    Inference calls are serialised with a thread lock taken in the worker
    thread, so one instance can be shared by callers on different event
    loops (one per Streamlit session).
    """

    def __init__(self, scorer: Scorer, labels: Sequence = LABELS, input_size=INPUT_SIZE):
        self.scorer = scorer
        self.labels = tuple(labels)
        self.input_size = input_size
        self._lock = threading.Lock()

    def _score_sync(self, image) -> Tuple[float, ...]:
        x = preprocess(image, self.input_size)
        with self._lock:
            try:
                preds = self.scorer.predict(x)
            except Exception as e:
                raise PredictionError(f"Scorer failed: {e}") from e

        preds = np.asarray(preds, dtype=np.float64)
        expected = (1, len(self.labels))
        if preds.shape != expected:
            raise PredictionError(f"Scorer returned shape {preds.shape}, expected {expected}")
        return tuple(float(p) for p in preds[0])

    async def score(self, image) -> Tuple[float, ...]:
        return await asyncio.to_thread(self._score_sync, image)


async def load_classifier(path, labels: Sequence = LABELS) -> Classifier:
    path = Path(path)
    if not path.exists():
        raise ModelLoadError(f"Cannot find classifier model at {path}")

    def _load():
        from tensorflow.keras.models import load_model

        return load_model(path, compile=False)

    try:
        model = await asyncio.to_thread(_load)
    except Exception as e:
        raise ModelLoadError(f"Failed to load {path}: {e}") from e

    logger.info("Loaded classifier from %s", path)
    return Classifier(KerasScorer(model), labels=labels)
