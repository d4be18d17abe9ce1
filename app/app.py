# ======================================================
# KrishiRakshak · AI Crop Disease Chat
# ======================================================

import asyncio
import logging
import sys
from pathlib import Path

import pandas as pd
import streamlit as st

# ======================================================
# PATHS
# ======================================================
ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from krishirakshak import api_client, mock_api_client
from krishirakshak.classifier import Classifier, load_classifier
from krishirakshak.config import Settings
from krishirakshak.decoder import ImageFile
from krishirakshak.errors import EmptyInputError, ExplanationError, ModelLoadError, PipelineBusyError
from krishirakshak.explanation import ExplanationClient
from krishirakshak.labels import LABELS
from krishirakshak.orchestrator import MAX_IMAGES, PipelineOrchestrator
from krishirakshak.store import BotText, ExplanationStatus, ResultCard, UserTurn

settings = Settings.from_env()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# ======================================================
# STREAMLIT CONFIG
# ======================================================
st.set_page_config(page_title="KrishiRakshak", layout="wide")


# ======================================================
# HELPERS
# ======================================================
@st.cache_resource
def load_cnn_model():
    """Load the classifier once per app container."""
    try:
        return asyncio.run(load_classifier(settings.model_path)), "Keras model"
    except ModelLoadError as e:
        logger.error("%s", e)
        return None, str(e)


def make_orchestrator(classifier):
    if settings.backend_url:
        client = ExplanationClient(base_url=settings.backend_url, timeout=settings.request_timeout)
    else:
        client = ExplanationClient(transport=mock_api_client.post_agent_response)
    orch = PipelineOrchestrator(
        classifier=classifier or Classifier(mock_api_client.StubScorer()),
        explanation_client=client,
        notify=st.toast,
    )
    orch.announce_model(classifier is not None)
    return orch


def render_card(orch, card: ResultCard):
    p = card.prediction
    preview = card.source.preview.image() if card.source.preview else None
    if preview is not None:
        st.image(preview, caption=card.source.name, width=256)
    st.markdown(f"**{p.readable}**  \nConfidence: {p.confidence_text}")
    st.write(card.advice)

    with st.expander("Raw scores"):
        scores = pd.DataFrame({"label": [l.value for l in LABELS], "score": p.raw_scores}).set_index("label")
        st.bar_chart(scores)

    if card.explanation_status is ExplanationStatus.READY:
        st.markdown(card.explanation)
    elif card.explanation_status is ExplanationStatus.PENDING:
        st.caption("Fetching explanation...")

    if st.button("Get More Info", key=f"more-{card.id}", use_container_width=True):
        with st.spinner("Asking KrishiRakshak..."):
            asyncio.run(orch.request_explanation(card.id))
        st.rerun()


# ======================================================
# SESSION
# ======================================================
classifier, model_source = load_cnn_model()

if "orchestrator" not in st.session_state:
    st.session_state.orchestrator = make_orchestrator(classifier)
orch = st.session_state.orchestrator

# ======================================================
# HEADER
# ======================================================
st.title("🌾 KrishiRakshak")
st.caption("AI Crop Disease Chat")

if classifier is None:
    st.warning(f"Classifier not available ({model_source}). Running with a stub model; results are not real.")

if settings.backend_url:
    try:
        api_client.check_health(settings.backend_url)
    except ExplanationError as e:
        st.warning(f"Explanation API at {settings.backend_url} is not reachable: {e}")
else:
    st.info("No KRISHI_BACKEND_URL set: explanations are canned offline text.")

# ======================================================
# CHAT
# ======================================================
for entry in orch.store.list():
    if isinstance(entry, UserTurn):
        with st.chat_message("user"):
            st.write(entry.text)
            thumbs = [r.preview.image() for r in entry.images if r.preview]
            thumbs = [t for t in thumbs if t is not None]
            if thumbs:
                st.image(thumbs, width=64)
    elif isinstance(entry, BotText):
        with st.chat_message("assistant"):
            st.write(entry.text)
    elif isinstance(entry, ResultCard):
        with st.chat_message("assistant"):
            render_card(orch, entry)

# ======================================================
# INPUT
# ======================================================
with st.form("send", clear_on_submit=True):
    uploaded = st.file_uploader(
        f"Add up to {MAX_IMAGES} leaf images",
        type=["jpg", "jpeg", "png"],
        accept_multiple_files=True,
        disabled=orch.busy,
    )
    text = st.text_input("Ask or describe...")
    sent = st.form_submit_button("Send", disabled=orch.busy)

if sent:
    uploaded = uploaded or []
    if len(uploaded) > MAX_IMAGES:
        st.toast(f"Max {MAX_IMAGES} images. Added first {MAX_IMAGES}.")
    files = [ImageFile.from_upload(f) for f in uploaded[:MAX_IMAGES]]
    try:
        with st.spinner("Analyzing..."):
            asyncio.run(orch.submit(files, text))
    except EmptyInputError as e:
        st.warning(str(e))
    except PipelineBusyError:
        st.info("Still analyzing the previous images.")
    else:
        st.rerun()
