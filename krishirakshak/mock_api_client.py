# krishirakshak/mock_api_client.py
# Offline stand-ins used when no backend or model file is configured.
import numpy as np

from krishirakshak.errors import MissingFieldsError
from krishirakshak.labels import LABELS

REQUIRED_FIELDS = ("label", "advice", "confidence", "messages")


# -----------------------
# Mock API functions
# -----------------------

def post_agent_response(payload: dict, base_url=None, timeout=None) -> str:
    if any(not payload.get(k) for k in REQUIRED_FIELDS):
        raise MissingFieldsError(
            "Missing required fields: label, advice, confidence, messages", status_code=400
        )
    label = str(payload["label"]).replace("_", " ", 1)
    return (
        f"**Problem Understanding:** The leaf was detected as *{label}* "
        f"({payload['confidence']}).\n\n"
        f"**Simple Action Steps:** {payload['advice']}\n\n"
        "_Offline mode: set KRISHI_BACKEND_URL for a generated explanation._"
    )


class StubScorer:
    """Returns the same distribution for every image."""

    def __init__(self, scores=None):
        if scores is None:
            scores = np.full(len(LABELS), 0.02)
            scores[-1] = 1.0 - 0.02 * (len(LABELS) - 1)
        self.scores = np.asarray(scores, dtype=np.float32)
        self.calls = 0

    def predict(self, batch):
        self.calls += 1
        return np.expand_dims(self.scores, 0)
