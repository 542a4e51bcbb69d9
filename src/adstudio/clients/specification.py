from __future__ import annotations

import json
import logging
import os
from typing import Any, Protocol
from urllib import error, request

from adstudio.config.settings import Settings
from adstudio.models import AD_TYPE_LABELS

logger = logging.getLogger(__name__)

LANGUAGE_NAMES = {"zh": "Chinese", "en": "English"}


class SpecificationClient(Protocol):
    """Turns a user brief into a markdown production specification."""

    def generate_specification(
        self,
        prompt_text: str,
        ad_type: str,
        model_choice: str,
        language: str,
    ) -> str: ...


def build_specification_prompt(
    prompt_text: str, ad_type: str, model_choice: str, language: str
) -> str:
    return (
        f'Act as an ad production planner. Input: "{prompt_text}", Type: "{ad_type}", '
        f'Model: "{model_choice}". Create a professional markdown project spec in '
        f"{LANGUAGE_NAMES.get(language, 'English')}. "
        "Include headers: # Analysis, ## Strategy, ## Visuals."
    )


class TemplateSpecificationClient:
    """Deterministic offline specification writer."""

    def generate_specification(
        self,
        prompt_text: str,
        ad_type: str,
        model_choice: str,
        language: str,
    ) -> str:
        label = AD_TYPE_LABELS.get(ad_type, ad_type)
        if language == "zh":
            return "\n".join(
                [
                    "# 需求分析",
                    f"- **创意描述**: {prompt_text}",
                    f"- **视频类型**: {label}",
                    f"- **生成模型**: {model_choice}",
                    "",
                    "## 策略",
                    "- 前三秒突出核心卖点，吸引目标人群停留。",
                    "- 结尾给出清晰的行动号召。",
                    "",
                    "## 视觉",
                    "- 15 秒竖版画面，高对比度大字排版。",
                    "- 品牌主色贯穿全片。",
                ]
            )
        return "\n".join(
            [
                "# Analysis",
                f"- **Brief**: {prompt_text}",
                f"- **Ad type**: {label}",
                f"- **Model**: {model_choice}",
                "",
                "## Strategy",
                "- Lead with the core selling point in the first three seconds.",
                "- Close on a clear call to action.",
                "",
                "## Visuals",
                "- 15 second vertical cut with bold, high-contrast typography.",
                "- Brand colors carried through every shot.",
            ]
        )


class GeminiSpecificationClient:
    """Small Gemini adapter using the generateContent REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gemini-3-flash-preview",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_s: float = 30.0,
    ) -> None:
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY is missing")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def generate_specification(
        self,
        prompt_text: str,
        ad_type: str,
        model_choice: str,
        language: str,
    ) -> str:
        payload = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {
                            "text": build_specification_prompt(
                                prompt_text, ad_type, model_choice, language
                            )
                        }
                    ],
                }
            ]
        }
        response_json = self._request(payload)
        return self._extract_text(response_json) or "Done."

    def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        if _trace_enabled():
            logger.warning(
                "LLM trace request provider=gemini model=%s url=%s timeout_s=%s",
                self.model,
                url,
                self.timeout_s,
            )
        req = request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "x-goog-api-key": self.api_key,
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="replace")
            raise RuntimeError(
                f"Specification request failed with status {exc.code}: {message[:400]}"
            ) from exc
        except error.URLError as exc:
            raise RuntimeError(f"Specification request failed: {exc.reason}") from exc

        if _trace_enabled():
            logger.warning("LLM trace response provider=gemini model=%s status=ok", self.model)
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RuntimeError("Specification request returned non-JSON response") from exc

    @staticmethod
    def _extract_text(response_json: dict[str, Any]) -> str:
        candidates = response_json.get("candidates", [])
        if not candidates:
            raise RuntimeError("Gemini response did not contain candidates")
        content = candidates[0].get("content", {})
        parts = content.get("parts", []) if isinstance(content, dict) else []
        segments: list[str] = []
        for part in parts:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                segments.append(part["text"])
        return "".join(segments).strip()


def build_specification_client(settings: Settings) -> SpecificationClient:
    mode = settings.spec_mode.strip().lower()
    if mode == "template":
        return TemplateSpecificationClient()
    if mode == "llm":
        return GeminiSpecificationClient(
            api_key=settings.resolved_gemini_api_key(),
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
        )
    raise RuntimeError(f"Unknown spec_mode: {settings.spec_mode!r}. Use 'template' or 'llm'.")


def _trace_enabled() -> bool:
    return os.getenv("ADSTUDIO_LLM_TRACE", "0").strip() == "1"
