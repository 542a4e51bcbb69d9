from __future__ import annotations

import io
import json
from typing import Any
from urllib import error

import pytest
from pydantic import ValidationError

from adstudio.clients import specification as specification_module
from adstudio.clients.specification import (
    GeminiSpecificationClient,
    TemplateSpecificationClient,
    build_specification_client,
    build_specification_prompt,
)
from adstudio.config.settings import Settings


class _FakeResponse(io.BytesIO):
    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ADSTUDIO_MAX_VERSIONS", "12")
    monkeypatch.setenv("ADSTUDIO_DEFAULT_LANGUAGE", "en")
    monkeypatch.setenv("ADSTUDIO_TICK_INTERVAL_S", "0.25")

    settings = Settings()

    assert settings.max_versions == 12
    assert settings.default_language == "en"
    assert settings.tick_interval_s == 0.25


def test_settings_reject_inverted_progress_steps() -> None:
    with pytest.raises(ValidationError):
        Settings(progress_step_min=10, progress_step_max=5)


def test_settings_reject_unknown_ad_type() -> None:
    with pytest.raises(ValidationError):
        Settings(default_ad_type="radio_spot")


def test_gemini_key_falls_back_to_plain_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ADSTUDIO_GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("API_KEY", "from-api-key")

    assert Settings().resolved_gemini_api_key() == "from-api-key"


def test_build_client_selects_mode() -> None:
    assert isinstance(
        build_specification_client(Settings(spec_mode="template")), TemplateSpecificationClient
    )
    llm_client = build_specification_client(Settings(spec_mode="llm", gemini_api_key="k"))
    assert isinstance(llm_client, GeminiSpecificationClient)

    with pytest.raises(RuntimeError, match="Unknown spec_mode"):
        build_specification_client(Settings(spec_mode="magic"))


def test_llm_mode_without_key_fails_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)

    with pytest.raises(RuntimeError, match="GEMINI_API_KEY is missing"):
        build_specification_client(Settings(spec_mode="llm", gemini_api_key=""))


def test_template_client_writes_requested_language() -> None:
    client = TemplateSpecificationClient()

    english = client.generate_specification("sneakers", "text_poster", "veo3", "en")
    chinese = client.generate_specification("sneakers", "ecommerce", "seedance", "zh")

    assert english.startswith("# Analysis")
    assert "## Strategy" in english and "## Visuals" in english
    assert "Text Poster Ad" in english
    assert chinese.startswith("# 需求分析")
    assert "E-commerce Ad" in chinese


def test_prompt_names_headers_and_language() -> None:
    prompt = build_specification_prompt("sneakers", "text_poster", "veo3", "zh")

    assert '"sneakers"' in prompt
    assert "Chinese" in prompt
    assert "# Analysis, ## Strategy, ## Visuals" in prompt


def test_gemini_client_posts_prompt_and_joins_parts(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["headers"] = dict(req.header_items())
        captured["body"] = json.loads(req.data.decode("utf-8"))
        captured["timeout"] = timeout
        parts = [{"text": "# Analysis"}, {"text": "\nok"}]
        payload = {"candidates": [{"content": {"parts": parts}}]}
        return _FakeResponse(json.dumps(payload).encode("utf-8"))

    monkeypatch.setattr(specification_module.request, "urlopen", fake_urlopen)
    client = GeminiSpecificationClient(api_key="secret", model="gemini-test", timeout_s=3.0)

    text = client.generate_specification("sneakers", "text_poster", "veo3", "en")

    assert text == "# Analysis\nok"
    assert captured["url"].endswith("/models/gemini-test:generateContent")
    assert captured["headers"]["X-goog-api-key"] == "secret"
    assert captured["timeout"] == 3.0
    prompt = captured["body"]["contents"][0]["parts"][0]["text"]
    assert "English" in prompt


def test_gemini_client_empty_text_becomes_done(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(req, timeout):
        payload = {"candidates": [{"content": {"parts": []}}]}
        return _FakeResponse(json.dumps(payload).encode("utf-8"))

    monkeypatch.setattr(specification_module.request, "urlopen", fake_urlopen)
    client = GeminiSpecificationClient(api_key="secret")

    assert client.generate_specification("x", "text_poster", "veo3", "en") == "Done."


def test_gemini_client_wraps_http_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_urlopen(req, timeout):
        raise error.HTTPError(req.full_url, 429, "Too Many Requests", {}, io.BytesIO(b"quota"))

    monkeypatch.setattr(specification_module.request, "urlopen", fake_urlopen)
    client = GeminiSpecificationClient(api_key="secret")

    with pytest.raises(RuntimeError, match="status 429: quota"):
        client.generate_specification("x", "text_poster", "veo3", "en")
