import asyncio
import threading

import pytest

from krishirakshak.decoder import ImageDecoder
from krishirakshak.errors import EmptyInputError, NetworkError, PipelineBusyError
from krishirakshak.labels import Label
from krishirakshak.orchestrator import (
    IMAGE_LOAD_ERROR_TEXT,
    MAX_IMAGES,
    MODEL_READY_TEXT,
    PREDICTION_ERROR_TEXT,
    TEXT_ONLY_REPLY,
    PipelineState,
)
from krishirakshak.store import BotText, BotTyping, ExplanationStatus, ResultCard, UserTurn

from conftest import SequenceScorer, one_hot


def kinds(orch):
    return [type(e) for e in orch.store.list()]


def test_empty_submission_is_rejected_without_state_change(make_orchestrator):
    orch = make_orchestrator()
    with pytest.raises(EmptyInputError):
        asyncio.run(orch.submit([], "   "))
    assert orch.store.list() == ()
    assert orch.state is PipelineState.IDLE


def test_single_image_produces_one_card(make_orchestrator, leaf):
    orch = make_orchestrator(SequenceScorer([one_hot(5, value=0.92)]))
    card_ids = asyncio.run(orch.submit([leaf("maize.png")]))

    assert kinds(orch) == [UserTurn, ResultCard]
    user, card = orch.store.list()
    assert user.text == "Sent 1 image(s) for analysis."
    assert card.id == card_ids[0]
    assert card.prediction.label is Label.MAIZE_DISEASED
    assert card.advice == "Rotate crops and use Trichoderma-based compost."
    assert card.source.name == "maize.png"
    assert orch.state is PipelineState.IDLE


def test_user_text_mentions_image_count(make_orchestrator, leaf):
    orch = make_orchestrator()
    asyncio.run(orch.submit([leaf(), leaf()], "  spots on my leaves "))
    assert orch.store.list()[0].text == "spots on my leaves (2 image(s))"


def test_batch_of_six_truncates_to_four(make_orchestrator, leaf):
    scorer = SequenceScorer([one_hot(i) for i in range(6)])
    orch = make_orchestrator(scorer)
    files = [leaf(f"leaf{i}.png") for i in range(6)]

    card_ids = asyncio.run(orch.submit(files))

    assert len(card_ids) == MAX_IMAGES == 4
    cards = orch.store.cards()
    assert [c.source.name for c in cards] == ["leaf0.png", "leaf1.png", "leaf2.png", "leaf3.png"]
    assert len(orch.store.list()[0].images) == 4
    assert scorer.calls == 4


def test_cards_follow_submission_order(make_orchestrator, leaf):
    labels = [Label.TOMATO_DISEASED, Label.CASHEW_HEALTHY, Label.CASSAVA_DISEASED]
    indices = [7, 0, 3]
    orch = make_orchestrator(SequenceScorer([one_hot(i) for i in indices]))
    asyncio.run(orch.submit([leaf(f"{i}.png") for i in indices]))
    assert [c.prediction.label for c in orch.store.cards()] == labels
    assert BotTyping not in kinds(orch)


def test_decode_failure_leaves_user_turn_and_error_only(make_orchestrator, broken_file):
    orch = make_orchestrator()
    card_ids = asyncio.run(orch.submit([broken_file]))

    assert card_ids == []
    assert kinds(orch) == [UserTurn, BotText]
    assert orch.store.list()[1].text == IMAGE_LOAD_ERROR_TEXT


def test_failure_stops_rest_of_batch(make_orchestrator, leaf, broken_file):
    scorer = SequenceScorer([one_hot(0), one_hot(1), one_hot(2)])
    orch = make_orchestrator(scorer)
    card_ids = asyncio.run(orch.submit([leaf("a.png"), broken_file, leaf("c.png")]))

    assert len(card_ids) == 1
    assert kinds(orch) == [UserTurn, ResultCard, BotText]
    assert scorer.calls == 1


def test_prediction_failure_appends_error_and_releases_preview(make_orchestrator, leaf):
    orch = make_orchestrator(SequenceScorer([RuntimeError("boom"), one_hot(0)]))
    asyncio.run(orch.submit([leaf("a.png"), leaf("b.png")]))

    assert kinds(orch) == [UserTurn, BotText]
    assert orch.store.list()[1].text == PREDICTION_ERROR_TEXT
    # only the two user-turn thumbnails are still held
    assert orch.decoder.live_previews == 2


def test_low_confidence_card_is_unknown(make_orchestrator, leaf):
    scores = [0.1, 0.05, 0.05, 0.05, 0.05, 0.05, 0.05, 0.05, 0.55]
    orch = make_orchestrator(SequenceScorer([scores]))
    asyncio.run(orch.submit([leaf()]))
    card = orch.store.cards()[0]
    assert card.prediction.label is Label.UNKNOWN
    assert card.prediction.confidence == pytest.approx(0.55)
    assert card.advice.startswith("Valid leaf detected or uncertain")


def test_text_only_submission_gets_hint(make_orchestrator):
    orch = make_orchestrator()
    assert asyncio.run(orch.submit([], "what is leaf curl?")) == []
    assert kinds(orch) == [UserTurn, BotText]
    assert orch.store.list()[1].text == TEXT_ONLY_REPLY


def test_second_batch_rejected_while_busy(make_orchestrator, leaf):
    orch = make_orchestrator()

    async def scenario():
        first = asyncio.create_task(orch.submit([leaf()]))
        await asyncio.sleep(0)
        assert orch.busy
        with pytest.raises(PipelineBusyError):
            await orch.submit([leaf()])
        return await first

    assert len(asyncio.run(scenario())) == 1
    assert len(orch.store.cards()) == 1


def test_announce_model(make_orchestrator):
    orch = make_orchestrator()
    orch.announce_model(True)
    assert orch.store.list()[0].text == MODEL_READY_TEXT


def test_explanation_patches_card(make_orchestrator, leaf, notices):
    seen = []

    def transport(payload):
        seen.append(payload)
        return f"Explain {payload['label']}"

    orch = make_orchestrator(SequenceScorer([one_hot(7, value=0.8)]), transport=transport)
    (card_id,) = asyncio.run(orch.submit([leaf()], "help"))

    text = asyncio.run(orch.request_explanation(card_id))

    assert text == "Explain Tomato_Diseased"
    card = orch.store.get(card_id)
    assert card.explanation == text
    assert card.explanation_status is ExplanationStatus.READY
    assert seen[0]["confidence"] == "80.0%"
    assert seen[0]["messages"][0] == {"role": "user", "text": "help (1 image(s))"}
    assert "Request sent" in notices


def test_explanation_failure_marks_absent_and_notifies(make_orchestrator, leaf, notices):
    def transport(payload):
        raise NetworkError("Explanation service unreachable")

    orch = make_orchestrator(transport=transport)
    (card_id,) = asyncio.run(orch.submit([leaf()]))

    assert asyncio.run(orch.request_explanation(card_id)) is None
    card = orch.store.get(card_id)
    assert card.explanation is None
    assert card.explanation_status is ExplanationStatus.ABSENT
    assert notices[-1] == "Explanation service unreachable"


def test_superseded_explanation_never_reaches_store(make_orchestrator, leaf, notices):
    started = threading.Event()
    gate = threading.Event()

    def transport(payload):
        if payload["label"] == Label.CASHEW_DISEASED.value:
            started.set()
            gate.wait(timeout=5)
            return "stale"
        return "fresh"

    orch = make_orchestrator(
        SequenceScorer([one_hot(1), one_hot(7)]),
        transport=transport,
    )
    first_id, second_id = asyncio.run(orch.submit([leaf("a.png"), leaf("b.png")]))

    async def scenario():
        first = asyncio.create_task(orch.request_explanation(first_id))
        while not started.is_set():
            await asyncio.sleep(0.01)
        assert orch.state is PipelineState.AWAITING_EXPLANATION
        try:
            second = await orch.request_explanation(second_id)
        finally:
            gate.set()
        return await first, second

    first_result, second_result = asyncio.run(scenario())

    assert first_result is None
    assert second_result == "fresh"
    assert orch.store.get(first_id).explanation is None
    assert orch.store.get(first_id).explanation_status is ExplanationStatus.ABSENT
    assert orch.store.get(second_id).explanation == "fresh"
    assert "Request canceled" in notices
    assert orch.state is PipelineState.IDLE


def test_close_releases_all_previews(make_orchestrator, leaf):
    orch = make_orchestrator()
    asyncio.run(orch.submit([leaf(), leaf()]))
    assert orch.decoder.live_previews == 4
    orch.close()
    assert orch.decoder.live_previews == 0


class SnapshotDecoder(ImageDecoder):
    """Records the conversation as it looks when each decode starts."""

    def __init__(self, store):
        super().__init__()
        self.store = store
        self.snapshots = []

    async def decode(self, file):
        self.snapshots.append(self.store.list())
        return await super().decode(file)


def test_decode_failure_shows_typing_while_processing(make_orchestrator, broken_file):
    orch = make_orchestrator()
    orch.decoder = SnapshotDecoder(orch.store)

    asyncio.run(orch.submit([broken_file]))

    (during,) = orch.decoder.snapshots
    assert [type(e) for e in during] == [UserTurn, BotTyping]
    assert kinds(orch) == [UserTurn, BotText]
    assert orch.store.list()[1].text == IMAGE_LOAD_ERROR_TEXT
