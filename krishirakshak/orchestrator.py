# krishirakshak/orchestrator.py
import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence

from krishirakshak.classifier import Classifier
from krishirakshak.decoder import ImageDecoder, ImageFile, ImageRef
from krishirakshak.errors import (
    DecodeError,
    EmptyInputError,
    ExplanationError,
    PipelineBusyError,
    PredictionError,
    RequestCancelled,
)
from krishirakshak.explanation import ExplanationClient, ExplanationContext
from krishirakshak.labels import advice_for
from krishirakshak.policy import CONF_THRESHOLD, classify
from krishirakshak.store import (
    BotText,
    BotTyping,
    ConversationStore,
    ExplanationStatus,
    ResultCard,
    UserTurn,
)

logger = logging.getLogger(__name__)

MAX_IMAGES = 4

MODEL_READY_TEXT = f"Model loaded - you can upload up to {MAX_IMAGES} images."
MODEL_FAILED_TEXT = "Failed to load model. Check the server logs."
IMAGE_LOAD_ERROR_TEXT = "Failed to load one image."
PREDICTION_ERROR_TEXT = "Prediction error (see logs)."
TEXT_ONLY_REPLY = f"Attach up to {MAX_IMAGES} leaf photos and I will check them for disease."


class PipelineState(str, Enum):
    IDLE = "idle"
    DECODING = "decoding"
    CLASSIFYING = "classifying"
    POLICY_APPLIED = "policy_applied"
    AWAITING_EXPLANATION = "awaiting_explanation"


def _user_text(text, n_images):
    if text:
        return f"{text} ({n_images} image(s))"
    return f"Sent {n_images} image(s) for analysis."


def _log_notice(message):
    logger.info("notice: %s", message)


class PipelineOrchestrator:
    """
    Drives one chat session: submitted images go through decode, scoring and
    the confidence policy, and land in the store as result cards.

    Only one batch runs at a time. Within a batch, images are handled in
    submission order and the first failure stops the batch.
    """

    def __init__(
        self,
        classifier: Classifier,
        store: Optional[ConversationStore] = None,
        explanation_client: Optional[ExplanationClient] = None,
        decoder: Optional[ImageDecoder] = None,
        threshold: float = CONF_THRESHOLD,
        notify: Callable[[str], None] = _log_notice,
    ):
        self.classifier = classifier
        self.store = store if store is not None else ConversationStore()
        self.explanations = explanation_client if explanation_client is not None else ExplanationClient()
        self.decoder = decoder if decoder is not None else ImageDecoder()
        self.threshold = threshold
        self.notify = notify
        self._batch_state = PipelineState.IDLE

    @property
    def state(self) -> PipelineState:
        if self._batch_state is not PipelineState.IDLE:
            return self._batch_state
        if self.explanations.pending is not None:
            return PipelineState.AWAITING_EXPLANATION
        return PipelineState.IDLE

    @property
    def busy(self) -> bool:
        return self._batch_state is not PipelineState.IDLE

    def announce_model(self, ready: bool) -> str:
        return self.store.append(BotText(MODEL_READY_TEXT if ready else MODEL_FAILED_TEXT))

    # ----------------------------
    # Image batches
    # ----------------------------
    async def submit(self, files: Sequence[ImageFile] = (), text: Optional[str] = None) -> List[str]:
        """Process one submission and return the ids of the cards it produced."""
        if self.busy:
            raise PipelineBusyError("A batch is already being processed")

        text = (text or "").strip()
        files = list(files or ())
        if not files and not text:
            raise EmptyInputError("Attach images or type a message.")
        if len(files) > MAX_IMAGES:
            logger.info("Truncating batch of %d images to %d", len(files), MAX_IMAGES)
            files = files[:MAX_IMAGES]

        refs = tuple(ImageRef(f.name, self.decoder.open_preview(f)) for f in files)
        self.store.append(UserTurn(text=_user_text(text, len(files)), images=refs))

        if not files:
            self.store.append(BotText(TEXT_ONLY_REPLY))
            return []

        self._batch_state = PipelineState.DECODING
        self.store.append(BotTyping())
        try:
            return await self._run_batch(files)
        finally:
            self.store.remove_typing()
            self._batch_state = PipelineState.IDLE

    async def _run_batch(self, files):
        card_ids = []
        for i, file in enumerate(files):
            self._batch_state = PipelineState.DECODING
            try:
                decoded = await self.decoder.decode(file)
            except DecodeError:
                logger.exception("Decode failed for %s; dropping %d remaining image(s)", file.name, len(files) - i - 1)
                self._fail(IMAGE_LOAD_ERROR_TEXT)
                return card_ids

            self._batch_state = PipelineState.CLASSIFYING
            try:
                scores = await self.classifier.score(decoded.image)
                prediction = classify(scores, self.classifier.labels, self.threshold)
            except PredictionError:
                logger.exception("Prediction failed for %s; dropping %d remaining image(s)", file.name, len(files) - i - 1)
                decoded.preview.release()
                self._fail(PREDICTION_ERROR_TEXT)
                return card_ids

            self._batch_state = PipelineState.POLICY_APPLIED
            card = ResultCard(
                source=ImageRef(decoded.name, decoded.preview),
                prediction=prediction,
                advice=advice_for(prediction.label),
            )
            self.store.remove_typing()
            card_ids.append(self.store.append(card))
            logger.info("%s -> %s (%s)", file.name, prediction.label.value, prediction.confidence_text)
            if i < len(files) - 1:
                self.store.append(BotTyping())
        return card_ids

    def _fail(self, message):
        self.store.remove_typing()
        self.store.append(BotText(message))

    # ----------------------------
    # Explanations
    # ----------------------------
    async def request_explanation(self, card_id: str) -> Optional[str]:
        card = self.store.get(card_id)
        if not isinstance(card, ResultCard):
            raise TypeError(f"{card_id} is not a result card")

        self.store.update(card_id, explanation=None, explanation_status=ExplanationStatus.PENDING)
        p = card.prediction
        context = ExplanationContext(
            label=p.label.value,
            advice=card.advice,
            confidence=p.confidence_text,
            messages=self.store.history(),
        )
        self.notify("Request sent")

        try:
            explanation = await self.explanations.request_explanation(context, target=card_id)
        except RequestCancelled:
            pending = self.explanations.pending
            if pending is None or pending.target != card_id:
                self.store.update(card_id, explanation_status=ExplanationStatus.ABSENT)
            self.notify("Request canceled")
            return None
        except ExplanationError as e:
            logger.warning("Explanation request for %s failed: %s", card_id, e)
            self.store.update(card_id, explanation=None, explanation_status=ExplanationStatus.ABSENT)
            self.notify(str(e) or "Failed. Try again.")
            return None

        self.store.update(card_id, explanation=explanation, explanation_status=ExplanationStatus.READY)
        return explanation

    def close(self):
        self.explanations.cancel()
        self.store.close()
