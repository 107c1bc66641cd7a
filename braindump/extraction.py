# braindump/extraction.py
import json
import time
from dataclasses import dataclass
from datetime import date

import requests
import structlog

from braindump import prompts
from braindump.errors import ExtractionError
from braindump.models import UNSORTED, ParsedIdea

logger = structlog.get_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 4096
TITLE_MAX = 80
LABEL_MAX = 20


@dataclass
class ExtractionResult:
    ideas: list[ParsedIdea]
    model: str
    processing_time_ms: int


def strip_code_fences(text: str) -> str:
    """Remove a ```json / ``` wrapper the model sometimes adds despite instructions."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def sanitize_idea(raw) -> ParsedIdea:
    """Coerce one untrusted idea element into a ParsedIdea."""
    if not isinstance(raw, dict):
        raw = {}
    labels = raw.get("suggestedLabels")
    reminder = raw.get("suggestedReminder")
    return ParsedIdea(
        title=str(raw.get("title") or "Untitled")[:TITLE_MAX],
        content=str(raw.get("content") or ""),
        suggestedBucket=str(raw.get("suggestedBucket") or UNSORTED),
        isActionable=bool(raw.get("isActionable")),
        suggestedLabels=[str(label).lower()[:LABEL_MAX] for label in labels] if isinstance(labels, list) else [],
        suggestedReminder=str(reminder) if reminder else None,
    )


def parse_ideas(text: str) -> list[ParsedIdea]:
    """Decode the model's reply; the top level must be an object with an ``ideas`` list."""
    body = strip_code_fences(text)
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as e:
        logger.warning("extraction_reply_not_json", reply=body[:500])
        raise ExtractionError(f"Failed to parse Claude response: {e}") from e
    if not isinstance(parsed, dict) or not isinstance(parsed.get("ideas"), list):
        raise ExtractionError("Failed to parse Claude response: Invalid response format: missing ideas array")
    return [sanitize_idea(idea) for idea in parsed["ideas"]]


class IdeaExtractor:
    """Splits brain dump text into ideas with one Anthropic Messages API call."""

    def __init__(self, api_key: str | None, model: str, api_url: str = "https://api.anthropic.com",
                 timeout: float = 120):
        if not api_key:
            logger.warning("claude_api_key_missing", detail="CLAUDE_API_KEY not set - parsing will not work")
        self.api_key = api_key
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _request(self, system: str, user: str) -> dict:
        if not self.api_key:
            raise ExtractionError("Failed to parse brain dump: CLAUDE_API_KEY is not configured")
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }
        try:
            r = requests.post(f"{self.api_url}/v1/messages", headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExtractionError(f"Failed to parse brain dump: {e}") from e
        if r.status_code >= 400:
            # API error body passed through verbatim
            raise ExtractionError(f"Failed to parse brain dump: {r.status_code} {r.text[:500]}")
        try:
            return r.json()
        except ValueError as e:
            raise ExtractionError(f"Failed to parse brain dump: invalid API response ({e})") from e

    def extract(self, content: str, bucket_names: list[str], today: date | None = None) -> ExtractionResult:
        started = time.monotonic()
        reply = self._request(prompts.system_prompt(bucket_names), prompts.user_prompt(content, today))

        blocks = reply.get("content") if isinstance(reply, dict) else None
        text = next(
            (block.get("text") for block in blocks or []
             if isinstance(block, dict) and block.get("type") == "text"),
            None,
        )
        if text is None:
            raise ExtractionError("Failed to parse brain dump: No text response from Claude")

        ideas = parse_ideas(text)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info("ideas_extracted", model=self.model, ideas=len(ideas), elapsed_ms=elapsed_ms)
        return ExtractionResult(ideas=ideas, model=self.model, processing_time_ms=elapsed_ms)
