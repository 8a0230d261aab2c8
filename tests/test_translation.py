from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass

import allure
import httpx
import pytest

from eecho.config import EngineSettings
from eecho.translation import EmptyInputError, EngineUnavailableError, TranslationResult, Translator
from eecho.translation.detect import detect_japanese, japanese_ratio
from eecho.translation.errors import TranslationError
from eecho.translation.local import LocalTranslator, translator_factory
from eecho.translation.providers import (
    EchoProvider,
    OllamaProvider,
    ProviderResult,
    TransformersProvider,
    build_provider,
)
from eecho.translation.providers.ollama import build_prompt, cleanup_response

pytestmark = [
    allure.epic("Translation Engine"),
    allure.feature("Detection & Providers"),
]


@dataclass
class _RecordingProvider:
    available: bool = True
    name: str = "recording"
    calls: int = 0
    closed: bool = False

    def translate(self, text, options=None):
        self.calls += 1
        return ProviderResult(text=f"<{text}>")

    def is_available(self) -> bool:
        return self.available

    def close(self) -> None:
        self.closed = True


def test_detect_japanese_scripts() -> None:
    assert detect_japanese("こんにちは") is True
    assert detect_japanese("カタカナ") is True
    assert detect_japanese("漢字") is True
    assert detect_japanese("hello 世界") is True
    assert detect_japanese("hello") is False
    assert detect_japanese("   ") is False


def test_japanese_ratio_counts_characters() -> None:
    assert japanese_ratio("") == 0.0
    assert japanese_ratio("日本") == 1.0
    assert japanese_ratio("ab日本") == 0.5


def test_translator_translates_japanese_with_echo_provider() -> None:
    result = Translator(EchoProvider()).translate("  こんにちは ")

    assert result.translated_text == "Hello"
    assert result.original_text == "こんにちは"
    assert result.was_japanese is True
    assert result.provider == "echo"
    assert result.duration_ms >= 0


def test_translator_returns_non_japanese_text_unchanged_without_provider_call() -> None:
    provider = _RecordingProvider()

    result = Translator(provider).translate("hello")

    assert result.translated_text == "hello"
    assert result.was_japanese is False
    assert provider.calls == 0


def test_translator_rejects_empty_input() -> None:
    with pytest.raises(EmptyInputError, match="Translation input cannot be empty"):
        Translator(EchoProvider()).translate("  \n ")


def test_translator_reports_unavailable_provider() -> None:
    provider = _RecordingProvider(available=False)

    with pytest.raises(EngineUnavailableError, match='provider "recording" is not available'):
        Translator(provider).translate("ありがとう")
    assert provider.calls == 0


def test_translation_result_payload_uses_wire_field_names() -> None:
    result = TranslationResult(
        translated_text="Hello",
        original_text="こんにちは",
        was_japanese=True,
        provider="echo",
        duration_ms=12,
    )

    payload = result.to_payload()

    assert payload == {
        "translatedText": "Hello",
        "originalText": "こんにちは",
        "wasJapanese": True,
        "provider": "echo",
        "duration": 12,
    }
    assert TranslationResult.from_payload(payload) == result


def test_translation_result_from_payload_rejects_missing_fields() -> None:
    with pytest.raises(ValueError, match="missing field"):
        TranslationResult.from_payload({"translatedText": "x"})


def test_build_provider_selects_configured_engine() -> None:
    assert isinstance(build_provider(EngineSettings(provider="echo")), EchoProvider)
    assert isinstance(build_provider(EngineSettings(provider="transformers")), TransformersProvider)
    ollama = build_provider(EngineSettings(provider="ollama"))
    assert isinstance(ollama, OllamaProvider)
    ollama.close()
    with pytest.raises(ValueError, match="Unsupported translation provider"):
        build_provider(EngineSettings(provider="nope"))


def test_local_translator_builds_one_translator_per_mode() -> None:
    built: list[bool] = []

    def _factory(quiet: bool) -> Translator:
        built.append(quiet)
        return Translator(EchoProvider())

    local = LocalTranslator(_factory)
    local.translate("こんにちは")
    local.translate("ありがとう")
    local.translate("おはようございます", quiet=False)

    assert built == [True, False]


def test_translator_factory_uses_engine_settings() -> None:
    translator = translator_factory(EngineSettings(provider="echo"))(True)

    assert translator.translate("ありがとう").translated_text == "Thank you"


def test_transformers_provider_uses_loaded_pipeline() -> None:
    provider = TransformersProvider(model="test-model")
    provider._pipeline = lambda text, max_length: [{"translation_text": f"EN:{text}"}]

    result = provider.translate("こんにちは")

    assert result.text == "EN:こんにちは"
    assert result.model == "test-model"


def test_transformers_provider_maps_slow_pipeline_to_timeout() -> None:
    provider = TransformersProvider(timeout_seconds=0.05)

    def _slow(text, max_length):
        time.sleep(0.5)
        return [{"translation_text": text}]

    provider._pipeline = _slow

    with pytest.raises(TranslationError, match="Translation timeout"):
        provider.translate("こんにちは")


def test_ollama_provider_posts_generate_request_and_cleans_output() -> None:
    seen: dict[str, object] = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": []})
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": '"Translation: Good morning"'})

    provider = OllamaProvider(transport=httpx.MockTransport(_handler))

    assert provider.is_available() is True
    result = provider.translate("おはようございます")

    assert result.text == "Good morning"
    body = seen["body"]
    assert isinstance(body, dict)
    assert body["stream"] is False
    assert body["options"] == {"temperature": 0.3}
    assert "Japanese: おはようございます" in body["prompt"]
    provider.close()


def test_ollama_provider_reports_http_errors() -> None:
    provider = OllamaProvider(
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    assert provider.is_available() is False
    with pytest.raises(TranslationError, match="Ollama API error: 500"):
        provider.translate("こんにちは")
    provider.close()


def test_ollama_helpers() -> None:
    assert build_prompt("猫").endswith("English:")
    assert cleanup_response("  'English: Cat'  ") == "Cat"
    assert cleanup_response("Output: Dog") == "Dog"


def test_transformers_provider_wraps_pipeline_errors() -> None:
    provider = TransformersProvider()

    def _broken(text, max_length):
        raise RuntimeError("tokenizer missing")

    provider._pipeline = _broken

    with pytest.raises(TranslationError, match="Translation failed: tokenizer missing"):
        provider.translate("こんにちは")


def test_transformers_timeout_leaves_only_daemon_threads_behind() -> None:
    provider = TransformersProvider(timeout_seconds=0.05)
    release = threading.Event()
    provider._pipeline = lambda text, max_length: release.wait(5)

    with pytest.raises(TranslationError, match="Translation timeout"):
        provider.translate("こんにちは")

    engine_threads = [thread for thread in threading.enumerate() if thread.name == "eecho-engine"]
    assert engine_threads
    assert all(thread.daemon for thread in engine_threads)
    release.set()
    provider.close()
    assert provider._pipeline is None


def test_closing_local_translator_closes_each_cached_provider() -> None:
    providers: list[_RecordingProvider] = []

    def _factory(quiet: bool) -> Translator:
        providers.append(_RecordingProvider())
        return Translator(providers[-1])

    local = LocalTranslator(_factory)
    local.translate("hello")
    local.translate("hello", quiet=False)

    local.close()

    assert [provider.closed for provider in providers] == [True, True]


def test_ollama_client_is_closed_with_translator() -> None:
    provider = OllamaProvider(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

    Translator(provider).close()

    assert provider._client.is_closed is True
