"""KrishiRakshak crop-leaf disease pipeline.

Image decoding, classification with confidence gating, advice lookup and
the chat-style conversation state that the Streamlit app renders.
"""

from krishirakshak.labels import LABELS, Label, advice_for
from krishirakshak.policy import CONF_THRESHOLD, PredictionResult, classify

__all__ = [
    "LABELS",
    "Label",
    "advice_for",
    "CONF_THRESHOLD",
    "PredictionResult",
    "classify",
]
