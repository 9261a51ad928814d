import asyncio
import json

import httpx
import pytest

from teaching_apps.gemini_client import CompletionError, GeminiClient
from teaching_apps.image_client import ImageClient, ImageGenerationError
from teaching_apps.settings import settings

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/test-model:generateContent"
OPENROUTER_URL = "https://openrouter.test/chat/completions"
IMAGES_URL = "https://images.test/v1/images/generations"


class Provider:
    """Routes requests by URL prefix to canned responses and records them."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        for prefix, response in self.routes.items():
            if str(request.url).startswith(prefix):
                return response
        raise AssertionError(f"unexpected request to {request.url}")

    def last_json(self, prefix):
        matching = [r for r in self.requests if str(r.url).startswith(prefix)]
        return json.loads(matching[-1].content)


def _mocked(client, provider):
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(provider))
    if getattr(client, "_fallback_client", None) is not None:
        client._fallback_client = httpx.AsyncClient(transport=httpx.MockTransport(provider))
    return client


def _gemini_reply(text):
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _structured(provider, **kwargs):
    async def run():
        async with _mocked(GeminiClient(api_key="k", model="test-model"), provider) as client:
            return await client.generate_structured("system text", "user text", **kwargs)

    return asyncio.run(run())


def test_missing_key_is_rejected():
    with pytest.raises(ValueError):
        GeminiClient()
    with pytest.raises(ValueError):
        ImageClient()


def test_structured_completion_payload():
    provider = Provider({GEMINI_URL: _gemini_reply('{"answer": 42}')})
    schema = {"type": "object", "properties": {"answer": {"type": "integer"}}}
    assert _structured(provider, schema=schema, temperature=0.2) == {"answer": 42}

    assert provider.requests[-1].url.params["key"] == "k"
    body = provider.last_json(GEMINI_URL)
    assert body["systemInstruction"] == {"parts": [{"text": "system text"}]}
    assert body["contents"][0]["parts"][0]["text"] == "user text"
    assert body["generationConfig"] == {
        "responseMimeType": "application/json",
        "responseSchema": schema,
        "temperature": 0.2,
    }


def test_plain_generate():
    provider = Provider({GEMINI_URL: _gemini_reply("hello")})

    async def run():
        async with _mocked(GeminiClient(api_key="k", model="test-model"), provider) as client:
            return await client.generate("say hello")

    assert asyncio.run(run()) == "hello"
    assert provider.last_json(GEMINI_URL) == {"contents": [{"parts": [{"text": "say hello"}]}]}


def test_vertex_sends_key_in_header(monkeypatch):
    monkeypatch.setattr(settings, "gemini_provider", "vertex")
    monkeypatch.setattr(settings, "vertex_project", "demo-project")
    client = GeminiClient(api_key="k", model="test-model")
    assert client.base_url.startswith("https://us-central1-aiplatform.googleapis.com/v1/projects/demo-project/")
    provider = Provider({client.base_url: _gemini_reply("{}")})

    async def run():
        async with _mocked(client, provider):
            return await client.generate_structured("s", "u")

    assert asyncio.run(run()) == {}
    assert provider.requests[-1].headers["x-goog-api-key"] == "k"
    assert "key" not in provider.requests[-1].url.params


@pytest.mark.parametrize("text", ["not json at all", "[1, 2]"])
def test_non_object_output_raises(text):
    with pytest.raises(CompletionError):
        _structured(Provider({GEMINI_URL: _gemini_reply(text)}))


def test_unexpected_response_shape_raises():
    with pytest.raises(CompletionError, match="Unexpected Gemini response"):
        _structured(Provider({GEMINI_URL: httpx.Response(200, json={"promptFeedback": {}})}))


def test_http_failure_without_fallback_raises():
    with pytest.raises(CompletionError, match="Gemini call failed"):
        _structured(Provider({GEMINI_URL: httpx.Response(503, text="overloaded")}))


def test_falls_back_to_openrouter(monkeypatch):
    monkeypatch.setattr(settings, "openrouter_api_key", "or-key")
    monkeypatch.setattr(settings, "openrouter_base_url", OPENROUTER_URL)
    provider = Provider({
        GEMINI_URL: httpx.Response(500),
        OPENROUTER_URL: httpx.Response(200, json={"choices": [{"message": {"content": '{"ok": true}'}}]}),
    })

    assert _structured(provider, schema={"type": "object"}) == {"ok": True}
    body = provider.last_json(OPENROUTER_URL)
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0]["role"] == "system"
    assert '"type": "object"' in body["messages"][0]["content"]
    assert provider.requests[-1].headers["Authorization"] == "Bearer or-key"


def test_fallback_failure_raises(monkeypatch):
    monkeypatch.setattr(settings, "openrouter_api_key", "or-key")
    monkeypatch.setattr(settings, "openrouter_base_url", OPENROUTER_URL)
    provider = Provider({GEMINI_URL: httpx.Response(500), OPENROUTER_URL: httpx.Response(429)})
    with pytest.raises(CompletionError, match="fallback"):
        _structured(provider)


def _image(provider, prompt="a robot teacher", size="1024x1024"):
    async def run():
        client = ImageClient(api_key="img", base_url=IMAGES_URL, model="test-images")
        async with _mocked(client, provider):
            return await client.generate(prompt, size)

    return asyncio.run(run())


def test_image_generation():
    provider = Provider({IMAGES_URL: httpx.Response(200, json={"data": [{"url": "https://cdn.test/robot.png"}]})})
    assert _image(provider, size="512x512") == "https://cdn.test/robot.png"
    assert provider.requests[-1].headers["Authorization"] == "Bearer img"
    assert provider.last_json(IMAGES_URL) == {"model": "test-images", "prompt": "a robot teacher", "n": 1, "size": "512x512"}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, json={"error": {"message": "blocked"}}),
        httpx.Response(200, json={"data": []}),
        httpx.Response(200, json={"data": [{"url": ""}]}),
    ],
)
def test_image_failures(response):
    with pytest.raises(ImageGenerationError):
        _image(Provider({IMAGES_URL: response}))


@pytest.mark.parametrize("prompt, size", [("", "1024x1024"), ("a robot", "10x10")])
def test_image_input_validation(prompt, size):
    provider = Provider({})
    with pytest.raises(ValueError):
        _image(provider, prompt, size)
    assert provider.requests == []
