import io

import numpy as np
import pytest
from PIL import Image

from krishirakshak.classifier import Classifier
from krishirakshak.decoder import ImageDecoder, ImageFile
from krishirakshak.explanation import ExplanationClient
from krishirakshak.labels import LABELS
from krishirakshak.mock_api_client import StubScorer
from krishirakshak.orchestrator import PipelineOrchestrator
from krishirakshak.store import ConversationStore


def png_bytes(size=(40, 20), color=(30, 160, 60), fmt="PNG"):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def one_hot(index, value=0.9):
    scores = np.full(len(LABELS), (1.0 - value) / (len(LABELS) - 1))
    scores[index] = value
    return scores


class SequenceScorer:
    """Returns a different score vector on each call, in order."""

    def __init__(self, outputs):
        self.outputs = list(outputs)
        self.calls = 0

    def predict(self, batch):
        out = self.outputs[self.calls]
        self.calls += 1
        if isinstance(out, Exception):
            raise out
        return np.expand_dims(np.asarray(out, dtype=np.float32), 0)


@pytest.fixture
def leaf():
    def _make(name="leaf.png", **kwargs):
        return ImageFile(name=name, data=png_bytes(**kwargs))
    return _make


@pytest.fixture
def broken_file():
    return ImageFile(name="broken.jpg", data=b"definitely not an image")


@pytest.fixture
def notices():
    return []


@pytest.fixture
def make_orchestrator(notices):
    def _make(scorer=None, transport=None):
        scorer = scorer if scorer is not None else StubScorer(one_hot(0))
        return PipelineOrchestrator(
            classifier=Classifier(scorer),
            store=ConversationStore(),
            explanation_client=ExplanationClient(transport=transport or (lambda payload: "explained")),
            decoder=ImageDecoder(),
            notify=notices.append,
        )
    return _make
