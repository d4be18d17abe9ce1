# krishirakshak/api_client.py
import logging

import requests

from krishirakshak.errors import MissingFieldsError, NetworkError, RemoteError

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "http://localhost:8000"
AGENT_RESPONSE_PATH = "/api/v1/agent-response"
HEALTH_PATH = "/api/v1"


def _url(base_url, path):
    return f"{(base_url or DEFAULT_BACKEND_URL).rstrip('/')}/{path.lstrip('/')}"


def _error_message(resp):
    try:
        return resp.json().get("error") or resp.text
    except ValueError:
        return resp.text


def post_agent_response(payload: dict, base_url=None, timeout=60) -> str:
    """POST the classification context and return the generated explanation."""
    try:
        r = requests.post(_url(base_url, AGENT_RESPONSE_PATH), json=payload, timeout=timeout)
    except (requests.ConnectionError, requests.Timeout) as e:
        raise NetworkError(f"Explanation service unreachable: {e}") from e
    except requests.RequestException as e:
        raise NetworkError(str(e)) from e

    if r.status_code == 400:
        raise MissingFieldsError(_error_message(r), status_code=400)
    if not r.ok:
        raise RemoteError(_error_message(r), status_code=r.status_code)

    try:
        data = r.json()
    except ValueError as e:
        raise RemoteError("Explanation service returned invalid JSON", status_code=r.status_code) from e

    explanation = data.get("explanation") if isinstance(data, dict) else None
    if not explanation:
        raise RemoteError("Explanation service returned no explanation", status_code=r.status_code)
    return explanation


def check_health(base_url=None, timeout=5) -> dict:
    try:
        r = requests.get(_url(base_url, HEALTH_PATH), timeout=timeout)
        r.raise_for_status()
    except requests.HTTPError as e:
        raise RemoteError(str(e), status_code=e.response.status_code) from e
    except requests.RequestException as e:
        raise NetworkError(str(e)) from e
    return r.json()
