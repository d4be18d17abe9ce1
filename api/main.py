# api/main.py
import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from krishirakshak.config import Settings

settings = Settings.from_env()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("label", "advice", "confidence", "messages")
MISSING_FIELDS_ERROR = "Missing required fields: label, advice, confidence, messages"

PROMPT_TEMPLATE = """
You are "KrishiRakshak", an AI agricultural assistant for natural farming for farmers in Karnataka.
You have the following information:

- Detected Issue: {label}
- Model Advice: {advice} (confidence: {confidence})

Conversation so far:
{conversation}

Instructions:

1. Explain clearly what this issue means for the crop in simple terms, suitable for an uneducated farmer.
2. Provide natural remedies (bio-pesticides, cultural practices, predator releases) in simple actionable steps.
3. Give a short example or daily routine for treating this pest/disease.
4. Explain expected effectiveness in easy terms:
   - Yield: how much crop will be saved or improved
   - Pest control: how well pests will reduce
   - Soil health: how soil improves
5. Include any precaution or simple tips for recurrence prevention.
6. Answer any question the farmer asked in the conversation.
7. Keep the explanation short, easy to remember, and local language friendly (can include Kannada words if useful).

Structure the output as:

- Problem Understanding:
- Simple Action Steps:
- Daily Routine / Tips:
- Expected Outcome:
"""


# ----------------------------
# Generative model
# ----------------------------
class GeminiGenerator:
    def __init__(self, api_key, model_name):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name)

    def __call__(self, prompt: str) -> str:
        response = self.model.generate_content(prompt)
        return response.text


@lru_cache(maxsize=1)
def get_generator():
    if not settings.gemini_api_key:
        raise RuntimeError("GEMINI_API_KEY is missing. Set it in environment variables.")
    return GeminiGenerator(settings.gemini_api_key, settings.gemini_model)


def format_conversation(messages) -> str:
    lines = []
    for m in messages:
        if isinstance(m, dict):
            text = m.get("text") or m.get("content")
            if not text:
                continue
            lines.append(f"{m.get('role', 'user')}: {text}")
        elif isinstance(m, str) and m.strip():
            lines.append(f"user: {m.strip()}")
    return "\n".join(lines) or "(no messages)"


def build_prompt(label, advice, confidence, messages) -> str:
    return PROMPT_TEMPLATE.format(
        label=label,
        advice=advice,
        confidence=confidence,
        conversation=format_conversation(messages),
    )


def missing_fields(body) -> bool:
    if not isinstance(body, dict):
        return True
    for key in REQUIRED_FIELDS:
        value = body.get(key)
        if key == "messages":
            if not isinstance(value, list) or not value:
                return True
        elif value is None or not str(value).strip():
            return True
    return False


# ----------------------------
# FastAPI app
# ----------------------------
app = FastAPI(title="KrishiRakshak API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------
# Health check
# ----------------------------
@app.get("/api/v1")
def health():
    return {"message": "api is healthy", "status": 200}


# ----------------------------
# Explanation endpoint
# ----------------------------
def _generator_dependency():
    # Resolved lazily so a missing key only fails the request, not the health probe.
    try:
        return get_generator()
    except Exception:
        logger.exception("Generative model unavailable")
        return None


@app.post("/api/v1/agent-response")
async def agent_response(request: Request, generator=Depends(_generator_dependency)):
    try:
        body = await request.json()
    except ValueError:
        body = None

    if missing_fields(body):
        return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_ERROR})

    if generator is None:
        return JSONResponse(status_code=500, content={"error": "Failed to fetch Gemini response"})

    prompt = build_prompt(body["label"], body["advice"], body["confidence"], body["messages"])
    try:
        text = await run_in_threadpool(generator, prompt)
    except Exception:
        logger.exception("Gemini generation failed for label=%s", body["label"])
        return JSONResponse(status_code=500, content={"error": "Failed to fetch Gemini response"})

    return {"explanation": text}
