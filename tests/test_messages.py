"""Tests for messages, model descriptors and errors."""

import pytest

from switchboard.errors import (
    AuthError,
    DuplicateId,
    InvalidRequest,
    ProviderError,
    RateLimited,
    SwitchboardError,
    TransientProviderError,
    UnknownId,
)
from switchboard.messages import ContentPart, ConversationMessage, Role, coerce_messages, has_image_content
from switchboard.models import ModelDescriptor, ProviderKind, resolve_provider


class TestContentPart:
    def test_data_url_unpacked(self):
        """Test data URLs are unpacked into base64 data."""
        part = ContentPart.image_from_url("data:image/jpeg;base64,QUJD")
        assert part.data == "QUJD"
        assert part.media_type == "image/jpeg"
        assert part.as_url() == "data:image/jpeg;base64,QUJD"

    def test_remote_url_kept(self):
        """Test remote URLs are kept as URLs."""
        part = ContentPart.image_from_url("https://example.com/cat.png")
        assert part.url == "https://example.com/cat.png"
        assert part.is_image

    def test_from_openai_style_dict(self):
        """Test OpenAI image_url parts are read."""
        part = ContentPart.from_dict({"type": "image_url", "image_url": {"url": "https://x/y.png"}})
        assert part.url == "https://x/y.png"

    def test_unknown_type(self):
        """Test unknown part types raise ValueError."""
        with pytest.raises(ValueError):
            ContentPart.from_dict({"type": "audio"})


class TestConversationMessage:
    def test_from_dict(self):
        """Test unknown keys land in extras."""
        message = ConversationMessage.from_dict({"role": "user", "content": "hi", "cache": True})
        assert message.role is Role.USER
        assert message.text == "hi"
        assert message.extras == {"cache": True}

    def test_structured_content(self):
        """Test mixed text and image content."""
        message = ConversationMessage.from_dict({
            "role": "user",
            "content": [
                {"type": "text", "text": "what is "},
                {"type": "text", "text": "this?"},
                {"type": "image", "url": "https://x/cat.png"},
            ],
        })
        assert message.text == "what is this?"
        assert message.has_image
        assert message.to_dict()["content"][2] == {"type": "image", "url": "https://x/cat.png"}

    def test_coerce_preserves_order(self):
        """Test dicts and messages mix in order."""
        messages = coerce_messages([
            {"role": "system", "content": "s"},
            ConversationMessage(role=Role.USER, content="u"),
            {"role": "assistant", "content": "a"},
        ])
        assert [m.role for m in messages] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]

    def test_coerce_rejects_missing_role(self):
        """Test a message without a role names its position."""
        with pytest.raises(InvalidRequest, match="Message 1 is missing 'role'"):
            coerce_messages([{"role": "user", "content": "a"}, {"content": "b"}])

    def test_coerce_rejects_non_dict_part(self):
        """Test a content part that is not an object is rejected."""
        with pytest.raises(InvalidRequest, match="Message 0"):
            coerce_messages([{"role": "user", "content": [["text", "hi"]]}])

    def test_has_image_content(self):
        """Test image detection across messages."""
        text_only = [ConversationMessage(role="user", content="hi")]
        assert not has_image_content(text_only)
        with_image = text_only + [ConversationMessage(
            role="user", content=(ContentPart.image_from_url("https://x/a.png"),),
        )]
        assert has_image_content(with_image)

    def test_invalid_role(self):
        """Test an unknown role raises ValueError."""
        with pytest.raises(ValueError):
            ConversationMessage(role="narrator", content="x")


class TestModels:
    @pytest.mark.parametrize("name,kind", [
        ("openai", ProviderKind.OPENAI),
        ("OpenRouter", ProviderKind.OPENROUTER),
        ("GPTGOD0", ProviderKind.GPTGOD),
        ("Hugging Face", ProviderKind.HUGGINGFACE),
        ("anthropic", ProviderKind.CLAUDE),
        (ProviderKind.GEMINI, ProviderKind.GEMINI),
    ])
    def test_resolve_provider(self, name, kind):
        """Test provider names and aliases resolve."""
        assert resolve_provider(name) is kind

    def test_unknown_provider(self):
        """Test unknown names resolve to None."""
        assert resolve_provider("Unknown") is None
        assert resolve_provider(None) is None

    def test_capabilities(self):
        """Test capability flags on a model descriptor."""
        model = ModelDescriptor.from_dict({
            "id": "gpt-4o", "provider": "openai", "capabilities": ["vision", "function_calling"],
        })
        assert model.supports_vision
        assert model.supports_tools
        assert not ModelDescriptor(id="m", provider="openai").supports_vision


class TestErrors:
    def test_all_errors_carry_kind_and_message(self):
        """Test every error serializes kind and message."""
        for error in (DuplicateId("a"), UnknownId("b"), AuthError("bad key")):
            assert isinstance(error, SwitchboardError)
            data = error.to_dict()
            assert data["kind"] == error.kind
            assert data["message"]

    def test_retryable(self):
        """Test which provider errors are retryable."""
        assert RateLimited("slow down", retry_after=2.0).retryable
        assert TransientProviderError("503").retryable
        assert not AuthError("nope").retryable
        assert not ProviderError("400").retryable

    def test_provider_error_dict(self):
        """Test ProviderError serializes status and body."""
        error = RateLimited("slow down", status=429, body="{}", provider="claude", retry_after=3.0)
        assert error.to_dict() == {
            "kind": "rate_limited",
            "message": "slow down",
            "status": 429,
            "body": "{}",
            "provider": "claude",
            "retryable": True,
            "retry_after": 3.0,
        }
