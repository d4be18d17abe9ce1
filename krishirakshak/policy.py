# krishirakshak/policy.py
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from krishirakshak.errors import PredictionError
from krishirakshak.labels import LABELS, Label

CONF_THRESHOLD = 0.6


@dataclass(frozen=True)
class PredictionResult:
    label: Label
    confidence: float
    raw_scores: Tuple[float, ...]

    @property
    def readable(self) -> str:
        return self.label.readable

    @property
    def confidence_text(self) -> str:
        return f"{self.confidence * 100:.1f}%"


def classify(
    scores: Sequence[float],
    labels: Sequence[Label] = LABELS,
    threshold: float = CONF_THRESHOLD,
) -> PredictionResult:
    """
    Turn a score vector into a gated prediction.

    The top score picks the label (first index wins on ties). Scores under
    `threshold` are reported as Unknown, keeping the numeric confidence.
    """
    arr = np.asarray(scores, dtype=np.float64)
    if arr.ndim != 1 or arr.size == 0:
        raise PredictionError(f"Expected a flat score vector, got shape {arr.shape}")
    if arr.size != len(labels):
        raise PredictionError(
            f"Got {arr.size} scores for {len(labels)} labels"
        )
    if not np.all(np.isfinite(arr)):
        raise PredictionError("Score vector contains NaN or infinite values")

    idx = int(np.argmax(arr))
    confidence = float(arr[idx])
    label = Label(labels[idx])
    if confidence < threshold:
        label = Label.UNKNOWN

    return PredictionResult(
        label=label,
        confidence=confidence,
        raw_scores=tuple(float(s) for s in arr),
    )
