"""Generative summarization and search ranking (Gemini ``generateContent``).

Model output is never authoritative: ranked ids are restricted to the
candidates the caller supplied, and ranking failures degrade to an empty
result.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import BaseModel

from logos.config import DEFAULT_SUMMARIZER_MODEL

logger = logging.getLogger(__name__)

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

_JSON_ARRAY = re.compile(r"\[.*?\]", re.DOTALL)


class SummarizerError(Exception):
    """The summarization endpoint is unavailable or returned nothing usable."""


class SearchCandidate(BaseModel):
    """A record the model may rank; only ``id`` comes back."""

    id: str
    kind: str
    title: str
    detail: str | None = None


def extract_ids(text: str) -> list[str]:
    """Pull a list of ids out of a model reply.

    Accepts a bare JSON array, an object with an ``ids`` array, or either
    wrapped in prose/markdown fences.
    """
    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError:
        match = _JSON_ARRAY.search(text)
        if match is None:
            raise ValueError("No JSON id list in model reply") from None
        parsed = json.loads(match.group(0))
    if isinstance(parsed, dict):
        parsed = parsed.get("ids", [])
    if not isinstance(parsed, list):
        raise ValueError(f"Expected a JSON list of ids, got {type(parsed).__name__}")
    return [str(item) for item in parsed if isinstance(item, (str, int))]


class Summarizer:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        model: str = DEFAULT_SUMMARIZER_MODEL,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self.model = model

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def generate(self, prompt: str, *, json_output: bool = False) -> str:
        """Return the model's text reply to *prompt*.

        Raises ``SummarizerError`` when no key is configured, the request
        fails, or the reply has no text.
        """
        if not self._api_key:
            raise SummarizerError("Summarizer API key is not configured")

        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if json_output:
            body["generationConfig"] = {"responseMimeType": "application/json"}

        try:
            response = await self._client.post(
                f"{API_BASE_URL}/models/{self.model}:generateContent",
                params={"key": self._api_key},
                json=body,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SummarizerError(f"Summarizer request failed: {exc}") from exc

        try:
            parts = payload["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as exc:
            raise SummarizerError("Summarizer reply has no candidates") from exc
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise SummarizerError("Summarizer reply is empty")
        return text

    async def rank_ids(self, query: str, candidates: Sequence[SearchCandidate]) -> list[str]:
        """Ids of the candidates matching *query*, best first.

        Best effort: any failure is logged and yields ``[]``.
        """
        if not query.strip() or not candidates:
            return []

        known = {candidate.id for candidate in candidates}
        data = json.dumps([candidate.model_dump(exclude_none=True) for candidate in candidates])
        prompt = (
            "You are a semantic search engine for a CRM application. Analyse the "
            "user's query and pick the matching records from the JSON data below.\n\n"
            f'User query: "{query.strip()}"\n\n'
            f"Records (each has a unique 'id'): {data}\n\n"
            "Return only a JSON array of the matching ids, best match first. "
            "Return [] when nothing matches."
        )

        try:
            reply = await self.generate(prompt, json_output=True)
            ids = extract_ids(reply)
        except (SummarizerError, ValueError):
            logger.warning("Search ranking failed for query %r", query, exc_info=True)
            return []

        ranked: list[str] = []
        for item in ids:
            if item in known and item not in ranked:
                ranked.append(item)
        return ranked

    async def onboarding_packet(self, client_name: str, notes: Sequence[str] = ()) -> str:
        """Generate a markdown onboarding packet for a new client."""
        context = "\n".join(f"- {note}" for note in notes if note.strip())
        prompt = (
            "You are a friendly and professional onboarding specialist for a "
            "non-profit consulting firm. Write a personalised onboarding packet "
            "for a new client. The tone should be welcoming, informative and "
            "encouraging. Format the output as clear markdown.\n\n"
            f"Client: {client_name}\n\n"
            "Relationship notes:\n"
            f"{context or 'No notes recorded yet.'}\n\n"
            "Instructions:\n"
            "1. Start with a warm welcome addressed to the client by name.\n"
            "2. Summarise what we know about the relationship from the notes.\n"
            "3. Suggest concrete first steps for the engagement.\n"
            "4. End with an encouraging closing statement."
        )
        return await self.generate(prompt)
