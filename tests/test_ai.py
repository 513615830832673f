from __future__ import annotations

import io
import json
import unittest
from datetime import datetime, timezone
from unittest import mock

from dayflow_vault.ai import (
    AINarrator,
    _build_narrative_prompt,
    _chat_narrative,
    _gemini_narrative,
    _resolve_openai_endpoint,
)
from dayflow_vault.models import Session, TimelineCardRecord


class _FakeResponse(io.BytesIO):
    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class AITests(unittest.TestCase):
    def test_rejects_bad_configuration(self) -> None:
        with self.assertRaises(ValueError):
            AINarrator("carrier-pigeon", "", "model")
        with self.assertRaises(ValueError):
            AINarrator("openai", "", "gpt-4o-mini")
        with self.assertRaises(ValueError):
            AINarrator("local", "", "  ")

    def test_local_endpoint_default(self) -> None:
        self.assertEqual(_resolve_openai_endpoint("local", ""), "http://localhost:1234/v1/chat/completions")
        self.assertEqual(_resolve_openai_endpoint("openai", " http://proxy/v1 "), "http://proxy/v1")

    def test_extract_text(self) -> None:
        gemini = {"candidates": [{"content": {"parts": [{"text": ""}, {"text": "Busy day."}]}}]}
        self.assertEqual(_gemini_narrative(gemini), "Busy day.")
        chat = {"choices": [{"message": {"content": [{"text": "Part one"}, {"text": "part two"}]}}]}
        self.assertEqual(_chat_narrative(chat), "Part one\npart two")
        with self.assertRaises(RuntimeError):
            _chat_narrative({"choices": []})
        with self.assertRaises(RuntimeError):
            _gemini_narrative({"candidates": [{"content": {"parts": [{"text": "  "}]}}]})

    def test_narrate_posts_with_configured_timeout(self) -> None:
        reply = {"choices": [{"message": {"content": " Focused morning. "}}]}
        narrator = AINarrator("local", "", "llama3", timeout=7)
        with mock.patch("urllib.request.urlopen", return_value=_FakeResponse(json.dumps(reply).encode("utf-8"))) as urlopen:
            text = narrator.narrate("2024-05-01", [], [])

        self.assertEqual(text, "Focused morning.")
        request = urlopen.call_args.args[0]
        self.assertEqual(urlopen.call_args.kwargs["timeout"], 7)
        self.assertEqual(request.full_url, "http://localhost:1234/v1/chat/completions")
        self.assertNotIn("Authorization", request.headers)
        self.assertEqual(json.loads(request.data)["model"], "llama3")

    def test_non_json_reply_names_provider(self) -> None:
        narrator = AINarrator("local", "", "llama3")
        with mock.patch("urllib.request.urlopen", return_value=_FakeResponse(b"<html>")):
            with self.assertRaises(RuntimeError) as ctx:
                narrator.narrate("2024-05-01", [], [])
        self.assertIn("local returned a non-JSON", str(ctx.exception))

    def test_prompt_lists_sessions_and_cards(self) -> None:
        session = Session(
            id=1,
            start_time=datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc),
            end_time=datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
            title="Parser refactor",
            summary="Tokenizer rewrite",
            tags="[]",
        )
        card = TimelineCardRecord(1, 1, "", "", "Work", "", "Coding", "Split lexer")
        prompt = _build_narrative_prompt("2024-05-01", [session], [card])
        self.assertIn("Date: 2024-05-01", prompt)
        self.assertIn("- 09:00-10:00 Parser refactor: Tokenizer rewrite", prompt)
        self.assertIn("- [Work] Coding: Split lexer", prompt)
        self.assertIn("No sessions were recorded.", _build_narrative_prompt("2024-05-01", [], []))


if __name__ == "__main__":
    unittest.main()
