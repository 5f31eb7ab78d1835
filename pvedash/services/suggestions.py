"""Suggestion features backed by an Ollama-style text-generation endpoint.

The generated text is not interpreted: it is split into paragraphs and each
paragraph becomes the body of one entry in a fixed-shape suggestion list.
"""

from __future__ import annotations

import json

import httpx

from pvedash.config import Settings
from pvedash.errors import SuggestionUnavailable
from pvedash.models.records import Suggestion, SuggestionList
from pvedash.utils.logging import get_logger

log = get_logger(__name__)

_PROMPT = (
    "You are assisting the operator of a Proxmox home server.\n"
    "Topic: {topic}\n"
    "{context}"
    "Give short, concrete suggestions, one paragraph each."
)


def build_prompt(topic: str, context: dict | None = None) -> str:
    ctx = ""
    if context:
        ctx = "Current state:\n" + json.dumps(context, indent=2, default=str) + "\n"
    return _PROMPT.format(topic=topic, context=ctx)


def split_suggestions(text: str) -> list[Suggestion]:
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    return [
        Suggestion(title=f"Suggestion {i}", body=body)
        for i, body in enumerate(paragraphs, start=1)
    ]


class SuggestionService:
    def __init__(
        self,
        cfg: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = cfg.pve_llm_url.rstrip("/")
        self._model = cfg.pve_llm_model
        self._timeout = cfg.pve_llm_timeout_seconds
        self._transport = transport

    async def suggest(self, topic: str, context: dict | None = None) -> SuggestionList:
        payload = {
            "model": self._model,
            "prompt": build_prompt(topic, context),
            "stream": False,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                resp = await client.post(f"{self._url}/api/generate", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("suggestions.failed", url=self._url, error=str(exc))
            raise SuggestionUnavailable(f"Suggestion endpoint failed: {exc}") from exc

        text = data.get("response", "") if isinstance(data, dict) else ""
        return SuggestionList(
            topic=topic,
            model=self._model,
            suggestions=split_suggestions(text),
        )
