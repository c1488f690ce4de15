"""
Client for the hosted AI analysis function.

The function receives the encounter context as JSON and answers with::

    {"diagnoses": [{"name", "prob"?, "reason"?}],
     "recommendations": [{"code"?, "name", "reason"?}]}

Model selection and prompting happen behind the endpoint; this module only
posts the context and validates what comes back. Any transport error,
non-2xx status or body that does not match the shape above surfaces as
AiFunctionError.
"""
from __future__ import annotations
import logging
from typing import Any
import requests
from pydantic import BaseModel, ConfigDict, ValidationError
from ed_workstation.core import config

log = logging.getLogger(__name__)

class AiFunctionError(Exception):
    """The AI call failed or returned something unusable."""

# models answer order codes like 85025 as bare numbers; the columns are text
class AiDiagnosis(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    name: str
    prob: float | None = None
    reason: str | None = None

class AiRecommendation(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    code: str | None = None
    name: str
    reason: str | None = None

class AiAnalysis(BaseModel):
    diagnoses: list[AiDiagnosis] = []
    recommendations: list[AiRecommendation] = []

def parse_analysis(body: Any) -> AiAnalysis:
    """Validate a decoded response body.

    Missing top-level keys are read as empty lists; an item without a name or
    a non-list value is malformed.
    """
    if not isinstance(body, dict):
        raise AiFunctionError(f"Expected a JSON object, got {type(body).__name__}")
    if "error" in body:
        raise AiFunctionError(f"AI function reported an error: {body['error']}")
    try:
        return AiAnalysis.model_validate(body)
    except ValidationError as exc:
        raise AiFunctionError(f"Malformed AI response: {exc}") from exc

class AiFunctionClient:
    """POSTs encounter context to the AI function endpoint."""

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        *,
        provider: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url or config.AI_FUNCTION_URL
        self.api_key = api_key or config.AI_API_KEY
        self.provider = provider or config.AI_PROVIDER
        self.model = model or config.AI_MODEL
        self.timeout = timeout or config.AI_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    def analyze(self, context: dict[str, Any]) -> tuple[AiAnalysis, dict[str, Any]]:
        """Return the validated analysis and the raw decoded body."""
        if not self.url:
            raise AiFunctionError("AI function endpoint is not configured (AI_FUNCTION_URL)")

        try:
            resp = self.session.post(
                self.url, json=context, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as exc:
            log.error("AI function request failed: %s", exc)
            raise AiFunctionError(f"AI function request failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not resp.ok:
            detail = body.get("error") if isinstance(body, dict) else resp.text[:200]
            log.error("AI function returned %s: %s", resp.status_code, detail)
            raise AiFunctionError(f"AI function returned {resp.status_code}: {detail}")
        if body is None:
            raise AiFunctionError("AI function returned a non-JSON body")

        analysis = parse_analysis(body)
        log.info(
            "AI analysis received: %d diagnoses, %d recommendations",
            len(analysis.diagnoses),
            len(analysis.recommendations),
        )
        return analysis, body
