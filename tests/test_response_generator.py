import asyncio
from unittest.mock import AsyncMock

import pytest

from core.config import get_settings
from core.exceptions import ExternalServiceError
from llm import llm_client
from llm.legal_prompt import DECLINE_MESSAGES, ERROR_MESSAGES, PERSONAS
from llm.llm_client import GeminiClient
from models.chat_schema import ChatMessage, ContextItem, Language, QueryCategory
from services import response_generator
from utils.clock import utcnow


def item(index: int, content: str = "Body") -> ContextItem:
    return ContextItem(kind="case", title=f"Title {index}", content=content, source=f"Case: Title {index}")


@pytest.fixture
def llm():
    mock = AsyncMock()
    mock.generate.return_value = "Here is the legal position."
    return mock


async def test_off_topic_is_declined_without_model_call(llm):
    result = await response_generator.generate(
        "best biryani in town", Language.roman_urdu, [item(1)], QueryCategory.off_topic, llm=llm
    )

    assert result.response_text == DECLINE_MESSAGES[Language.roman_urdu]
    assert result.sources == []
    llm.generate.assert_not_called()


async def test_legal_query_cites_sources_in_order(llm):
    context = [item(1), item(2), item(3)]

    result = await response_generator.generate(
        "what is bail", Language.english, context, QueryCategory.legal, llm=llm
    )

    assert result.response_text == "Here is the legal position."
    assert result.sources == ["Case: Title 1", "Case: Title 2", "Case: Title 3"]
    assert not result.failed

    prompt, instruction = llm.generate.await_args.args
    assert instruction == PERSONAS[Language.english]
    assert prompt.index("[1] Title 1") < prompt.index("[2] Title 2") < prompt.index("[3] Title 3")
    assert "what is bail" in prompt


async def test_persona_follows_language(llm):
    await response_generator.generate("ضمانت کیا ہے", Language.urdu, [], QueryCategory.legal, llm=llm)
    assert llm.generate.await_args.args[1] == PERSONAS[Language.urdu]


async def test_model_failure_returns_localized_error(llm):
    llm.generate.side_effect = ExternalServiceError("gemini")

    result = await response_generator.generate(
        "talaq ka tareeqa", Language.roman_urdu, [item(1)], QueryCategory.legal, llm=llm
    )

    assert result.failed
    assert result.response_text == ERROR_MESSAGES[Language.roman_urdu]
    assert result.sources == []


async def test_only_recent_history_is_sent(llm, monkeypatch):
    monkeypatch.setattr(get_settings(), "chat_history_turns", 2)
    history = [
        ChatMessage(role="user" if i % 2 == 0 else "assistant", content=f"turn-{i}", timestamp=utcnow())
        for i in range(5)
    ]

    await response_generator.generate("and bail?", Language.english, [], QueryCategory.legal, history, llm=llm)

    prompt = llm.generate.await_args.args[0]
    assert "turn-3" in prompt and "turn-4" in prompt
    assert "turn-2" not in prompt


def test_context_block_truncates_long_items():
    block, sources = response_generator.build_context_block([item(1, "a" * 20), item(2, "short")], item_chars=10)

    assert block == "[1] Title 1\naaaaaaaaaa...\n\n[2] Title 2\nshort"
    assert sources == ["Case: Title 1", "Case: Title 2"]


class TestGeminiRetry:
    @pytest.fixture
    def client(self, monkeypatch):
        settings = get_settings()
        monkeypatch.setattr(settings, "llm_max_attempts", 2)
        monkeypatch.setattr(settings, "llm_retry_base_delay_seconds", 0.5)
        self.sleep = AsyncMock()
        monkeypatch.setattr(llm_client.asyncio, "sleep", self.sleep)
        return GeminiClient(api_key="test-key", model="test-model")

    async def test_retries_then_succeeds(self, client, monkeypatch):
        once = AsyncMock(side_effect=[asyncio.TimeoutError(), "answer"])
        monkeypatch.setattr(client, "_generate_once", once)

        assert await client.generate("prompt", "system") == "answer"
        assert once.await_count == 2
        self.sleep.assert_awaited_once_with(0.5)

    async def test_gives_up_after_max_attempts(self, client, monkeypatch):
        once = AsyncMock(side_effect=asyncio.TimeoutError())
        monkeypatch.setattr(client, "_generate_once", once)

        with pytest.raises(ExternalServiceError) as exc:
            await client.generate("prompt", "system")

        assert exc.value.service == "gemini"
        assert once.await_count == 2

    async def test_unexpected_errors_are_not_retried(self, client, monkeypatch):
        once = AsyncMock(side_effect=KeyError("boom"))
        monkeypatch.setattr(client, "_generate_once", once)

        with pytest.raises(KeyError):
            await client.generate("prompt", "system")
        assert once.await_count == 1


def test_missing_api_key_is_reported_as_unavailable(monkeypatch):
    monkeypatch.setattr(llm_client, "_client", None)
    monkeypatch.setattr(get_settings(), "gemini_api_key", "")

    with pytest.raises(ExternalServiceError):
        llm_client.get_llm_client()
