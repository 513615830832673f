from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Any, Iterable, Sequence

from .models import Session, TimelineCardRecord

SUPPORTED_PROVIDERS = ("gemini", "openai", "local")

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent?key={key}"
OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"
LOCAL_ENDPOINT = "http://localhost:1234/v1/chat/completions"

NARRATIVE_TEMPERATURE = 0.2
MAX_PROMPT_SESSIONS = 40
MAX_PROMPT_CARDS = 80


class AINarrator:
    """Writes the narrative paragraph of a day summary with an LLM."""

    def __init__(self, provider: str, api_key: str, model: str, endpoint: str = "", timeout: float = 120):
        provider = provider.strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider}")
        if not model.strip():
            raise ValueError("Model is required.")
        if provider in {"gemini", "openai"} and not api_key.strip():
            raise ValueError("API key is required for this provider.")
        self._provider = provider
        self._api_key = api_key.strip()
        self._model = model.strip()
        self._endpoint = endpoint.strip()
        self._timeout = timeout

    @property
    def provider(self) -> str:
        return self._provider

    def narrate(self, day: str, sessions: Sequence[Session], cards: Sequence[TimelineCardRecord]) -> str:
        prompt = _build_narrative_prompt(day, sessions, cards)
        if self._provider == "gemini":
            reply = self._post(
                GEMINI_ENDPOINT.format(model=self._model, key=self._api_key),
                {
                    "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                    "generationConfig": {"temperature": NARRATIVE_TEMPERATURE},
                },
            )
            return _gemini_narrative(reply)

        reply = self._post(
            _resolve_openai_endpoint(self._provider, self._endpoint),
            {
                "model": self._model,
                "temperature": NARRATIVE_TEMPERATURE,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers=_auth_headers(self._api_key),
        )
        return _chat_narrative(reply)

    def _post(self, url: str, payload: dict[str, Any], headers: dict[str, str] | None = None) -> dict[str, Any]:
        request = urllib.request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json", **(headers or {})},
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"{self._provider} narrative request failed ({exc.code}): {body}") from exc
        except urllib.error.URLError as exc:
            raise RuntimeError(f"{self._provider} narrative request failed: {exc.reason}") from exc

        try:
            reply = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"{self._provider} returned a non-JSON narrative reply.") from exc
        if not isinstance(reply, dict):
            raise RuntimeError(f"{self._provider} returned an unexpected narrative reply.")
        return reply


def _build_narrative_prompt(
    day: str,
    sessions: Sequence[Session],
    cards: Sequence[TimelineCardRecord],
) -> str:
    lines = [
        "Summarize this day of screen activity in 3-5 sentences.",
        f"Date: {day}",
    ]
    if sessions:
        lines.append("Sessions:")
        for session in sessions[:MAX_PROMPT_SESSIONS]:
            lines.append(
                f"- {session.start_time:%H:%M}-{session.end_time:%H:%M} "
                f"{session.title or 'Untitled'}: {session.summary}"
            )
    else:
        lines.append("No sessions were recorded.")
    if cards:
        lines.append("Timeline cards:")
        for card in cards[:MAX_PROMPT_CARDS]:
            lines.append(f"- [{card.category}] {card.title}: {card.summary}")
    lines.append(
        "Output plain text only. Mention the main focus, notable interruptions, "
        "and never invent activities that are not in the data."
    )
    return "\n".join(lines)


def _resolve_openai_endpoint(provider: str, endpoint: str) -> str:
    custom = endpoint.strip()
    if custom:
        return custom
    return LOCAL_ENDPOINT if provider == "local" else OPENAI_ENDPOINT


def _auth_headers(api_key: str) -> dict[str, str]:
    if not api_key.strip():
        return {}
    return {"Authorization": f"Bearer {api_key.strip()}"}


def _join_text_parts(parts: Iterable[Any]) -> str:
    chunks = [part.get("text") for part in parts if isinstance(part, dict)]
    return "\n".join(chunk.strip() for chunk in chunks if isinstance(chunk, str) and chunk.strip())


def _first_entry(reply: dict[str, Any], key: str) -> dict[str, Any]:
    entries = reply.get(key)
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        raise RuntimeError(f"Narrative reply has no {key}.")
    return entries[0]


def _gemini_narrative(reply: dict[str, Any]) -> str:
    content = _first_entry(reply, "candidates").get("content") or {}
    text = _join_text_parts(content.get("parts") or [])
    if not text:
        raise RuntimeError("Narrative reply has no text.")
    return text


def _chat_narrative(reply: dict[str, Any]) -> str:
    content = (_first_entry(reply, "choices").get("message") or {}).get("content")
    if isinstance(content, list):
        content = _join_text_parts(content)
    if not isinstance(content, str) or not content.strip():
        raise RuntimeError("Narrative reply has no text.")
    return content.strip()
