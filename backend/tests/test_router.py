import pytest

from conftest import FakeResponse, gateway_reply
from nova_backend.ai import gemini, router
from nova_backend.ai.errors import (
    AIProviderError,
    ChatRequestError,
    NotConfiguredError,
    PaymentRequiredError,
    RateLimitError,
)
from nova_backend.ai.prompts import (
    CHAT_SYSTEM_PROMPT,
    CLAUDE_SYSTEM_PROMPT,
    IMAGE_MODEL,
    IMAGE_SYSTEM_PROMPT,
)
from nova_backend.ai.router import ChatRequest, ProviderSettings


@pytest.fixture
def settings():
    return ProviderSettings(
        gateway_url="https://gateway.test/v1/chat/completions",
        gateway_api_key="gateway-key",
        anthropic_api_key="anthropic-key",
        gemini_api_key="gemini-key",
    )


def test_select_provider_by_prefix():
    assert router.select_provider("claude-sonnet-4-5") == router.PROVIDER_ANTHROPIC
    assert router.select_provider("gemini-2.5-flash") == router.PROVIDER_GEMINI
    assert router.select_provider("google/gemini-2.5-flash") == router.PROVIDER_GATEWAY
    assert router.select_provider("openai/gpt-5") == router.PROVIDER_GATEWAY


def test_empty_message_is_rejected(settings):
    with pytest.raises(ChatRequestError, match="Message is required"):
        router.complete(ChatRequest(message="   "), settings)


def test_gateway_request_includes_system_prompt_and_history(settings, post):
    post.responses.append(gateway_reply("Sure thing"))
    history = [{"role": "user", "content": "Earlier"}, {"role": "assistant", "content": "Reply\n\n_Response time: 1s_"}]

    result = router.complete(ChatRequest(message="Now", model="openai/gpt-5", history=history), settings)

    assert result.response == "Sure thing"
    assert result.images is None
    call = post.calls[0]
    assert call["url"] == settings.gateway_url
    assert call["headers"]["Authorization"] == "Bearer gateway-key"
    body = call["json"]
    assert body["model"] == "openai/gpt-5"
    assert "modalities" not in body
    assert body["messages"][0] == {"role": "system", "content": CHAT_SYSTEM_PROMPT}
    assert body["messages"][2] == {"role": "assistant", "content": "Reply"}
    assert body["messages"][-1] == {"role": "user", "content": "Now"}


def test_image_generation_swaps_model_and_defaults_text(settings, post):
    images = [{"type": "image_url", "image_url": {"url": "https://img.test/cat.png"}}]
    post.responses.append(gateway_reply(None, images=images))

    result = router.complete(ChatRequest(message="A cat", generate_image=True), settings)

    body = post.calls[0]["json"]
    assert body["model"] == IMAGE_MODEL
    assert body["modalities"] == ["image", "text"]
    assert body["messages"][0]["content"] == IMAGE_SYSTEM_PROMPT
    assert result.response == "Image generated successfully"
    assert result.to_dict() == {"response": "Image generated successfully", "images": images}


@pytest.mark.parametrize(
    "status, error_type, message",
    [
        (429, RateLimitError, "Rate limit exceeded. Please try again later."),
        (402, PaymentRequiredError, "Payment required. Please add credits to continue."),
        (500, AIProviderError, "AI gateway error: 500"),
    ],
)
def test_gateway_error_statuses(settings, post, status, error_type, message):
    post.responses.append(FakeResponse(status, text="upstream says no"))
    with pytest.raises(error_type) as excinfo:
        router.complete(ChatRequest(message="Hi"), settings)
    assert str(excinfo.value) == message


def test_gateway_without_content_or_images_fails(settings, post):
    post.responses.append(FakeResponse(200, {"choices": [{"message": {"content": ""}}]}))
    with pytest.raises(AIProviderError, match="No response from AI"):
        router.complete(ChatRequest(message="Hi"), settings)


def test_claude_uses_native_api(settings, post):
    post.responses.append(FakeResponse(200, {"content": [{"type": "text", "text": "Claude here"}]}))
    history = [{"role": "user", "content": "Earlier"}]

    result = router.complete(ChatRequest(message="Hi", model="claude-sonnet-4-5", history=history), settings)

    assert result.response == "Claude here"
    call = post.calls[0]
    assert call["url"] == "https://api.anthropic.com/v1/messages"
    assert call["headers"]["x-api-key"] == "anthropic-key"
    assert call["headers"]["anthropic-version"] == "2023-06-01"
    body = call["json"]
    assert body["system"] == CLAUDE_SYSTEM_PROMPT
    assert body["max_tokens"] == 4096
    assert body["messages"] == [
        {"role": "user", "content": "Earlier"},
        {"role": "user", "content": "Hi"},
    ]


def test_claude_error_and_empty_reply(settings, post):
    post.responses.append(FakeResponse(401, text="bad key"))
    with pytest.raises(AIProviderError, match="Anthropic API error: 401"):
        router.complete(ChatRequest(message="Hi", model="claude-3-haiku"), settings)

    post.responses.append(FakeResponse(200, {"content": []}))
    with pytest.raises(AIProviderError, match="No response from Claude"):
        router.complete(ChatRequest(message="Hi", model="claude-3-haiku"), settings)


def test_missing_keys_raise_not_configured(settings):
    settings.anthropic_api_key = None
    with pytest.raises(NotConfiguredError, match="ANTHROPIC_API_KEY"):
        router.complete(ChatRequest(message="Hi", model="claude-3-haiku"), settings)

    settings.gateway_api_key = None
    with pytest.raises(NotConfiguredError, match="AI_GATEWAY_API_KEY"):
        router.complete(ChatRequest(message="Hi"), settings)


def test_bare_gemini_model_uses_sdk(settings, monkeypatch):
    captured = {}

    def fake_generate_reply(messages, api_key, model):
        captured.update(messages=messages, api_key=api_key, model=model)
        return "Direct Gemini"

    monkeypatch.setattr(gemini, "generate_reply", fake_generate_reply)

    result = router.complete(ChatRequest(message="Hi", model="gemini-2.5-pro"), settings)

    assert result.response == "Direct Gemini"
    assert captured["api_key"] == "gemini-key"
    assert captured["model"] == "gemini-2.5-pro"
    assert captured["messages"][0]["role"] == "system"


def test_generate_title_cleans_reply(settings, post):
    post.responses.append(gateway_reply('"Weekend Hiking Plans"\n'))
    assert router.generate_title("Help me plan a hike this weekend", settings) == "Weekend Hiking Plans"
    assert "Help me plan a hike" in post.calls[0]["json"]["messages"][-1]["content"]


def test_complete_caps_history_at_the_configured_limit(settings, post):
    settings.history_limit = 3
    history = [{"role": "user", "content": f"old {i}"} for i in range(10)]
    post.responses.append(gateway_reply("ok"))

    router.complete(ChatRequest(message="Now", model="openai/gpt-5", history=history), settings)

    sent = post.calls[0]["json"]["messages"]
    assert [m["content"] for m in sent[1:-1]] == ["old 7", "old 8", "old 9"]
