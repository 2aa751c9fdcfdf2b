"""Token counting per model family."""

import pytest

from codechat.core.completion import ChatMessage
from codechat.core.tokens import encoder as encoder_module
from codechat.core.tokens import (
    ENCODING_CL100K,
    ENCODING_O200K,
    TokenEncoder,
    encoder_for_model,
    encoding_name_for_model,
    get_token_encoder,
)


class FakeEncoding:
    """One token per character; records what was encoded."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.encoded: list[tuple[str, object]] = []

    def encode(self, text, disallowed_special="all"):
        self.encoded.append((text, disallowed_special))
        return list(text)


@pytest.fixture()
def loaded(monkeypatch):
    """Replace tiktoken's loader and the encoder cache."""
    names: list[str] = []

    def fake_get_encoding(name):
        names.append(name)
        return FakeEncoding(name)

    monkeypatch.setattr(encoder_module.tiktoken, "get_encoding", fake_get_encoding)
    monkeypatch.setattr(encoder_module, "_encoders", {})
    return names


class TestEncodingFamily:
    @pytest.mark.parametrize(
        "model, expected",
        [
            ("gpt-3.5-turbo", ENCODING_CL100K),
            ("gpt-4-32k", ENCODING_CL100K),
            ("gpt-4o", ENCODING_O200K),
            ("GPT-4o-mini", ENCODING_O200K),
            ("o1-preview", ENCODING_O200K),
            ("local-llama", ENCODING_CL100K),
        ],
    )
    def test_family(self, model, expected):
        assert encoding_name_for_model(model) == expected


class TestTokenEncoder:
    def test_message_counts_role_and_content(self, loaded):
        encoder = TokenEncoder(ENCODING_CL100K)
        message = ChatMessage(role="user", content="hello")

        assert encoder.count_message_tokens(message) == len("userhello")

    def test_empty_text_does_not_load(self, loaded):
        encoder = TokenEncoder(ENCODING_CL100K)
        assert encoder.count_text_tokens("") == 0
        assert loaded == []

    def test_special_tokens_counted_as_text(self, loaded):
        encoder = TokenEncoder(ENCODING_CL100K)
        encoder.count_text_tokens("<|endoftext|>")
        assert encoder.encoding.encoded == [("<|endoftext|>", ())]

    def test_encoding_loaded_once(self, loaded):
        encoder = TokenEncoder(ENCODING_CL100K)
        encoder.count_text_tokens("a")
        encoder.count_text_tokens("b")
        assert loaded == [ENCODING_CL100K]


class TestEncoderCache:
    def test_one_encoder_per_family(self, loaded):
        assert get_token_encoder(ENCODING_CL100K) is get_token_encoder(ENCODING_CL100K)
        assert encoder_for_model("gpt-4") is encoder_for_model("gpt-3.5-turbo")
        assert encoder_for_model("gpt-4o") is not encoder_for_model("gpt-4")

    def test_encoder_for_model_family(self, loaded):
        assert encoder_for_model("gpt-4o").encoding_name == ENCODING_O200K
