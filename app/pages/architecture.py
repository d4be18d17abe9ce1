import streamlit as st

st.set_page_config(page_title="Architecture · KrishiRakshak", layout="centered")

st.title("🏗️ Architecture Overview")
st.caption("How a leaf photo becomes a diagnosis, advice and an explanation")

st.divider()

st.subheader("🔄 Pipeline")

st.markdown(
    """
    ```text
    Leaf photos (up to 4) + optional question
            │
            ▼
    Image Decoding
    (EXIF rotate, RGB, downscale)
            │
            ▼
    Classifier (Keras)
    (224x224 nearest resize, /255)
            │
            ▼
    Confidence Policy
    (argmax, < 0.6 → Unknown)
            │
            ▼
    Advice Lookup ──► Result Card in chat
                            │
                  "Get More Info" (optional)
                            │
                            ▼
            /api/v1/agent-response (FastAPI)
                            │
                            ▼
                 Gemini explanation text
    ```
    """
)

st.divider()

st.subheader("🧩 Component Breakdown")

with st.expander("1️⃣ Image Decoding", expanded=True):
    st.markdown(
        """
        - Reads each file with PIL and applies EXIF orientation
        - Keeps the aspect ratio; very large photos are scaled down
        - Holds a preview thumbnail for the chat until it is released
        """
    )

with st.expander("2️⃣ Classification", expanded=False):
    st.markdown(
        """
        - A pre-trained Keras model scores 9 labels (4 crops × healthy/diseased, plus Unknown)
        - One inference at a time; images are scored in the order they were sent
        - Scores under 60% confidence are reported as **Unknown**, keeping the number
        """
    )

with st.expander("3️⃣ Conversation", expanded=False):
    st.markdown(
        """
        - Every message, typing indicator and result card is appended to one ordered log
        - The first image that fails to load or score stops the rest of that batch
        """
    )

with st.expander("4️⃣ Explanations", expanded=False):
    st.markdown(
        """
        - The card's label, advice and confidence plus the chat history go to the API
        - The API fills the KrishiRakshak natural-farming prompt and asks Gemini
        - A newer request cancels an older one; late answers are dropped
        """
    )

st.divider()

st.caption("© KrishiRakshak · Architecture")
