"""Tests for the Groq client, clothing analyzer and outfit chat."""

import base64
import json
from types import SimpleNamespace

import httpx
import pytest

from config.settings import AIConfig
from config.settings import config as app_config
from kagai.ai import ClothingAnalyzer, GroqClient, ImageFetchError, OutfitChatService
from kagai.ai.chat import chat_title
from kagai.errors import ValidationError


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_openai(content="ok"):
    completions = FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


@pytest.fixture(autouse=True)
def _no_model_overrides(monkeypatch) -> None:
    monkeypatch.delenv("GROQ_VISION_MODEL", raising=False)
    monkeypatch.delenv("GROQ_CHAT_MODEL", raising=False)


# ---------------------------------------------------------------------------
# GroqClient
# ---------------------------------------------------------------------------


def test_client_requires_api_key(monkeypatch) -> None:
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    with pytest.raises(ValueError):
        GroqClient(AIConfig())


async def test_generate_with_image_sends_data_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

    openai, completions = make_openai('{"type": "shirt"}')
    client = GroqClient(
        AIConfig(),
        client=openai,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    answer = await client.generate_with_image("Describe", "https://img.test/a.png", temperature=0.1)

    assert answer == '{"type": "shirt"}'
    call = completions.calls[0]
    assert call["model"] == AIConfig().vision_model
    assert call["temperature"] == 0.1
    image_part = call["messages"][0]["content"][1]
    expected = "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode()
    assert image_part == {"type": "image_url", "image_url": {"url": expected}}


async def test_image_fetch_failure_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    openai, completions = make_openai()
    client = GroqClient(
        AIConfig(),
        client=openai,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    with pytest.raises(ImageFetchError):
        await client.generate_with_image("Describe", "https://img.test/missing.jpg")
    assert completions.calls == []


def test_client_defaults_to_app_config_copy(monkeypatch) -> None:
    monkeypatch.setenv("GROQ_CHAT_MODEL", "llama-test-chat")
    openai, _ = make_openai()

    client = GroqClient(client=openai)

    assert client.config.chat_model == "llama-test-chat"
    assert client.config.vision_model == app_config.ai.vision_model
    assert client.config is not app_config.ai
    assert app_config.ai.chat_model != "llama-test-chat"


async def test_close_releases_pool_for_running_loop() -> None:
    client = GroqClient(AIConfig(api_key="k"))
    pool = client._client
    assert client._client is pool

    await client.close()

    assert client._clients == {}
    assert client._client is not pool
    await client.close()


async def test_generate_adds_system_prompt() -> None:
    openai, completions = make_openai("hello")
    client = GroqClient(AIConfig(), client=openai)
    assert await client.generate("hi", system="be brief") == "hello"
    assert [m["role"] for m in completions.calls[0]["messages"]] == ["system", "user"]
    assert completions.calls[0]["model"] == AIConfig().chat_model


# ---------------------------------------------------------------------------
# ClothingAnalyzer
# ---------------------------------------------------------------------------


async def test_analyze_normalizes_and_caches(make_ai) -> None:
    ai = make_ai('```json\n{"type": "Hoodie", "tags": ["Black", "Solid", "Casual", "Regular-Fit", "Extra"]}\n```')
    analyzer = ClothingAnalyzer(ai_client=ai)

    first = await analyzer.analyze("https://img.test/hoodie.jpg")
    second = await analyzer.analyze("https://img.test/hoodie.jpg")

    assert first.type == "hoodie"
    assert first.tags == ["black", "solid", "casual", "regular-fit"]
    assert second == first
    assert len(ai.calls) == 1
    assert ai.calls[0]["temperature"] == 0.1
    assert ai.calls[0]["max_tokens"] == 100


async def test_analyze_rejects_missing_url(make_ai) -> None:
    analyzer = ClothingAnalyzer(ai_client=make_ai("{}"))
    with pytest.raises(ValidationError) as exc:
        await analyzer.analyze("")
    assert exc.value.message == "Invalid or missing image URL"
    assert exc.value.status == 400


async def test_analyze_image_fetch_error_is_a_validation_error(make_ai) -> None:
    analyzer = ClothingAnalyzer(ai_client=make_ai(error=ImageFetchError("404")))
    with pytest.raises(ValidationError) as exc:
        await analyzer.analyze("https://img.test/gone.jpg")
    assert exc.value.message == "Failed to process image"


def test_parse_response_falls_back_on_bad_structure() -> None:
    analysis = ClothingAnalyzer.parse_response('"type": "Jeans", "tags": ["Blue", "Solid"]')
    assert analysis.type == "jeans"
    assert analysis.tags == ["blue", "solid"]


def test_parse_response_unknown_when_nothing_found() -> None:
    analysis = ClothingAnalyzer.parse_response("I can't see any clothing.")
    assert analysis.type == "unknown"
    assert analysis.tags == []


# ---------------------------------------------------------------------------
# Outfit chat
# ---------------------------------------------------------------------------


def test_chat_title() -> None:
    assert chat_title("a" * 80) == "a" * 50 + "..."
    assert chat_title("Shoes?") == "Shoes?..."


async def test_new_chat_stores_both_turns(store, fake_db, make_ai) -> None:
    ai = make_ai("Try white sneakers.")
    service = OutfitChatService(store, ai_client=ai)

    result = await service.send_message(
        "u1",
        "What shoes go with this?",
        outfit_id="r1",
        previous_messages=[{"role": "assistant", "content": "Hi!"}, {"role": "system", "content": "ignored"}],
        outfit_details={"items": [{"id": "w1"}]},
    )

    assert result["message"] == "Try white sneakers."
    chat = fake_db.tables["outfit_chats"][0]
    assert chat["id"] == result["chatId"]
    assert chat["outfit_id"] == "r1"
    assert chat["title"] == "What shoes go with this?..."

    messages = await service.get_messages(result["chatId"])
    assert [(m["role"], m["content"]) for m in messages] == [
        ("user", "What shoes go with this?"),
        ("assistant", "Try white sneakers."),
    ]

    sent = ai.calls[0]["messages"]
    assert [m["role"] for m in sent] == ["system", "assistant", "user"]
    assert json.dumps({"items": [{"id": "w1"}]}, indent=2) in sent[0]["content"]


async def test_existing_chat_is_continued(store, fake_db, make_ai) -> None:
    fake_db.seed("outfit_chats", {"id": "c1", "user_id": "u1", "title": "t", "last_message_at": "2024-01-01"})
    service = OutfitChatService(store, ai_client=make_ai("Sure."))

    result = await service.send_message("u1", "And a belt?", chat_id="c1")

    assert result["chatId"] == "c1"
    assert len(fake_db.tables["outfit_chats"]) == 1
    assert fake_db.tables["outfit_chats"][0]["last_message_at"] != "2024-01-01"


async def test_empty_message_rejected(store, make_ai) -> None:
    ai = make_ai("unused")
    with pytest.raises(ValidationError):
        await OutfitChatService(store, ai_client=ai).send_message("u1", "   ")
    assert ai.calls == []
