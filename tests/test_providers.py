from types import SimpleNamespace

import pytest
import requests

from chart_generator.errors import RefusalError
from chart_generator.llm.providers.gemini_provider import GeminiAdapter
from chart_generator.llm.providers.openrouter_provider import OpenRouterAdapter, extract_vendor
from chart_generator.llm.providers.perplexity_provider import PerplexityAdapter, model_family
from chart_generator.llm.types import GenerationRequest, ProviderError


def _completion(content, finish_reason="stop", total_tokens=30):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)],
        usage=SimpleNamespace(total_tokens=total_tokens, prompt_tokens=20, completion_tokens=10),
    )


class FakeCompletions:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


def _client(result=None, error=None):
    completions = FakeCompletions(result=result, error=error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


class FakeHttpResponse:
    def __init__(self, payload=None, status_code=200, text="", url=""):
        self.payload = payload
        self.status_code = status_code
        self.text = text
        self.ok = status_code < 400
        self.url = url

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error for url: {self.url}", response=self)

    def json(self):
        return self.payload


REQUEST = GenerationRequest(
    user_prompt="chart sales",
    model="openai/gpt-4o-mini",
    max_tokens=100,
    temperature=0.2,
    system_prompt="RULES",
    top_p=0.85,
)


def test_openrouter_generate_sends_chat_request():
    client, completions = _client(result=_completion('{"chartType": "bar"}'))
    adapter = OpenRouterAdapter(client=client)
    response = adapter.generate_content(REQUEST)

    assert response.content == '{"chartType": "bar"}'
    assert response.tokens_used == 30
    call = completions.calls[0]
    assert call["model"] == "openai/gpt-4o-mini"
    assert call["messages"] == [
        {"role": "system", "content": "RULES"},
        {"role": "user", "content": "chart sales"},
    ]
    assert call["max_tokens"] == 100
    assert call["top_p"] == 0.85


def test_openrouter_metadata_reports_vendor_and_usage():
    client, _ = _client(result=_completion("{}", finish_reason="length"))
    adapter = OpenRouterAdapter(client=client)
    response = adapter.generate_content(REQUEST)
    meta = adapter.get_additional_metadata(response, "anthropic/claude-3-haiku")
    assert meta == {
        "provider": "anthropic",
        "model_full_name": "anthropic/claude-3-haiku",
        "finish_reason": "length",
        "prompt_tokens": 20,
        "completion_tokens": 10,
    }


@pytest.mark.parametrize(
    "status, kind, message",
    [
        (401, "auth", "Invalid OpenRouter API key"),
        (429, "rate_limit", "OpenRouter API rate limit exceeded"),
        (500, "server_error", "OpenRouter API server error"),
        (402, "unknown", "OpenRouter insufficient credits"),
        (403, "content_blocked", "OpenRouter moderation blocked the request"),
    ],
)
def test_openrouter_errors_are_classified(status, kind, message):
    client, _ = _client(error=StatusError(status))
    adapter = OpenRouterAdapter(client=client)
    with pytest.raises(ProviderError) as excinfo:
        adapter.generate_content(REQUEST)
    assert excinfo.value.kind == kind
    assert excinfo.value.service == "openrouter"
    assert str(excinfo.value) == message


def test_error_without_status_is_unknown():
    adapter = OpenRouterAdapter(client=_client()[0])
    enhanced = adapter.enhance_error(TimeoutError("read timed out"))
    assert isinstance(enhanced, ProviderError)
    assert enhanced.kind == "unknown"
    assert "read timed out" in str(enhanced)


def test_classified_errors_pass_through_with_service():
    adapter = PerplexityAdapter(client=_client()[0])
    original = RefusalError(preview="I apologize")
    assert adapter.enhance_error(original) is original
    assert original.service == "perplexity"


def test_missing_key_is_an_auth_error(monkeypatch):
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    adapter = OpenRouterAdapter()
    with pytest.raises(ProviderError) as excinfo:
        adapter.generate_content(REQUEST)
    assert excinfo.value.kind == "auth"
    assert adapter.validate_api_key() is False


def test_validate_api_key_uses_probe_model():
    client, completions = _client(result=_completion("hello"))
    adapter = PerplexityAdapter(client=client)
    assert adapter.validate_api_key() is True
    assert completions.calls[0]["model"] == "sonar"
    assert completions.calls[0]["max_tokens"] == 10


def test_validate_api_key_reports_failure_as_false():
    client, _ = _client(error=StatusError(401))
    assert PerplexityAdapter(client=client).validate_api_key() is False


def test_perplexity_metadata():
    raw = _completion("{}")
    raw.citations = ["https://example.org"]
    client, _ = _client(result=raw)
    adapter = PerplexityAdapter(client=client)
    response = adapter.generate_content(REQUEST)
    meta = adapter.get_additional_metadata(response, "sonar-pro")
    assert meta["model_family"] == "sonar"
    assert meta["citations"] == ["https://example.org"]
    assert model_family("gpt-4") == "unknown"


def test_default_model_override():
    adapter = OpenRouterAdapter(client=_client()[0], default_model="deepseek/deepseek-chat-v3-0324:free")
    assert adapter.default_model == "deepseek/deepseek-chat-v3-0324:free"
    assert OpenRouterAdapter.default_model == "openai/gpt-4o-mini"


def test_available_models_are_copies():
    adapter = OpenRouterAdapter(client=_client()[0])
    models = adapter.get_available_models()
    assert {"id", "name", "description", "context_length", "cost_tier"} <= set(models[0])
    models[0]["name"] = "changed"
    assert adapter.get_available_models()[0]["name"] != "changed"


def test_extract_vendor():
    assert extract_vendor("openai/gpt-4o") == "openai"
    assert extract_vendor("gpt-4o") == "unknown"
    assert extract_vendor(None) == "unknown"


def test_gemini_uses_google_api_key_alias(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_API_KEY", "test-key")

    adapter = GeminiAdapter()
    assert adapter._api_key == "test-key"


def test_gemini_generate_posts_combined_prompt(monkeypatch):
    captured = {}
    payload = {
        "candidates": [
            {
                "content": {"parts": [{"text": '{"chartType": '}, {"text": '"line"}'}]},
                "finishReason": "STOP",
                "safetyRatings": [],
            }
        ],
        "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 8},
    }

    def fake_post(url, json, headers, timeout):
        captured.update(url=url, json=json, headers=headers, timeout=timeout)
        return FakeHttpResponse(payload)

    monkeypatch.setattr(requests, "post", fake_post)
    adapter = GeminiAdapter(api_key="k", timeout_seconds=5)
    request = GenerationRequest(user_prompt="chart", model="modification", max_tokens=50, temperature=0.1, system_prompt="RULES")
    response = adapter.generate_content(request)

    assert response.content == '{"chartType": "line"}'
    assert response.tokens_used == 20
    assert captured["url"].endswith("/models/gemini-2.5-pro:generateContent")
    assert captured["headers"] == {"x-goog-api-key": "k"}
    assert captured["json"]["contents"][0]["parts"][0]["text"] == "RULES\n\nUser request: chart"
    assert captured["json"]["generationConfig"] == {"temperature": 0.1, "maxOutputTokens": 50}
    assert captured["timeout"] == 5

    meta = adapter.get_additional_metadata(response, "modification")
    assert meta["model_full_name"] == "gemini-2.5-pro"
    assert meta["finish_reason"] == "STOP"


def test_gemini_safety_block_is_content_blocked(monkeypatch):
    payload = {"promptFeedback": {"blockReason": "SAFETY"}}
    monkeypatch.setattr(requests, "post", lambda url, **kwargs: FakeHttpResponse(payload))
    adapter = GeminiAdapter(api_key="k")
    with pytest.raises(ProviderError) as excinfo:
        adapter.generate_content(REQUEST)
    assert excinfo.value.kind == "content_blocked"


def test_gemini_bad_key_is_auth(monkeypatch):
    response = FakeHttpResponse(status_code=400, text='{"error": {"message": "API key not valid"}}')
    monkeypatch.setattr(requests, "post", lambda url, **kwargs: response)
    adapter = GeminiAdapter(api_key="bad")
    with pytest.raises(ProviderError) as excinfo:
        adapter.generate_content(REQUEST)
    assert excinfo.value.kind == "auth"
    assert excinfo.value.status == 400
    assert isinstance(excinfo.value.__cause__, requests.HTTPError)


def test_gemini_rate_limit(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda url, **kwargs: FakeHttpResponse(status_code=429))
    with pytest.raises(ProviderError) as excinfo:
        GeminiAdapter(api_key="k").generate_content(REQUEST)
    assert excinfo.value.kind == "rate_limit"


def test_gemini_validate_api_key(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, **kwargs: FakeHttpResponse({"models": []}))
    assert GeminiAdapter(api_key="k").validate_api_key() is True
    monkeypatch.setattr(requests, "get", lambda url, **kwargs: FakeHttpResponse(status_code=400))
    assert GeminiAdapter(api_key="k").validate_api_key() is False


def test_gemini_without_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    adapter = GeminiAdapter()
    assert adapter.validate_api_key() is False
    with pytest.raises(ProviderError) as excinfo:
        adapter.generate_content(REQUEST)
    assert excinfo.value.kind == "auth"


def test_gemini_errors_never_carry_the_api_key(monkeypatch):
    requested = []

    def fake_post(url, json, headers, timeout):
        requested.append(url)
        return FakeHttpResponse(status_code=404, url=url)

    monkeypatch.setattr(requests, "post", fake_post)
    with pytest.raises(ProviderError) as excinfo:
        GeminiAdapter(api_key="SECRET123").generate_content(REQUEST)
    assert excinfo.value.kind == "unknown"
    assert "404 Client Error" in str(excinfo.value)
    assert "SECRET123" not in str(excinfo.value)
    assert "SECRET123" not in requested[0]


def test_gemini_validate_api_key_sends_key_as_header(monkeypatch):
    captured = {}

    def fake_get(url, headers, timeout):
        captured.update(url=url, headers=headers)
        return FakeHttpResponse({"models": []})

    monkeypatch.setattr(requests, "get", fake_get)
    assert GeminiAdapter(api_key="SECRET123").validate_api_key() is True
    assert "SECRET123" not in captured["url"]
    assert captured["headers"] == {"x-goog-api-key": "SECRET123"}
