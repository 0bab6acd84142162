from __future__ import annotations

import json
from typing import Any, Callable, Optional, Sequence

import httpx

from livetrans.contracts import TranslationRequest, TranslationResult
from livetrans.errors import MalformedRemoteResponse, TranslationFailure

from .base import Translator

DEFAULT_TRANSLATION_MODEL = "gemini-2.5-flash"
GENERATE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


def build_prompt(segments: Sequence[str], target_lang: str) -> str:
    return (
        "You are an expert real-time translator.\n"
        f"Translate the following array of text segments into {target_lang}.\n"
        "Maintain the original sentence structure and meaning, ensuring contextual accuracy "
        "based on the sequence of segments.\n"
        "Provide your response as a JSON array of strings, where each string is the "
        "translation of the corresponding input segment.\n\n"
        "Input Segments:\n"
        f"{json.dumps(list(segments), ensure_ascii=False)}\n\n"
        "Provide only the JSON array of translated strings as your response."
    )


def build_request_body(segments: Sequence[str], target_lang: str) -> dict[str, Any]:
    return {
        "contents": [{"role": "user", "parts": [{"text": build_prompt(segments, target_lang)}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": {"type": "ARRAY", "items": {"type": "STRING"}},
        },
    }


def extract_translations(payload: Any) -> list[str]:
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedRemoteResponse("response has no candidate text") from e
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedRemoteResponse("candidate text is not JSON") from e
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise MalformedRemoteResponse("parsed response is not an array of strings")
    return parsed


class GeminiTranslator(Translator):
    """
    Context-aware batch translation through the Gemini generateContent API.
    The key is fetched on every call so a newly selected key takes effect.
    """

    def __init__(
        self,
        *,
        api_key: Callable[[], str],
        model: str = DEFAULT_TRANSLATION_MODEL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = float(timeout)
        self.transport = transport

    @property
    def name(self) -> str:
        return "gemini"

    def translate(self, req: TranslationRequest) -> TranslationResult:
        segments = tuple(req.segments)
        if not segments:
            return TranslationResult(source_segments=segments, translated_segments=[], provider=self.name)

        url = GENERATE_URL.format(model=self.model)
        headers = {"x-goog-api-key": self.api_key()}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(url, headers=headers, json=build_request_body(segments, req.target_lang))
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise TranslationFailure(f"translation request failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise MalformedRemoteResponse("response body is not JSON") from e
        return TranslationResult(
            source_segments=segments,
            translated_segments=extract_translations(payload),
            provider=self.name,
        )
