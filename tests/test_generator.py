"""Unit tests for answer generation and the chat providers."""
import json
from unittest.mock import MagicMock

import httpx
import pytest

from rfp_assist.models import ChunkPayload, ConversationTurn, EmbeddedPoint
from rfp_assist.rag.errors import (
    AnswerGenerationError,
    ChatServiceError,
    EmbeddingServiceError,
    InvalidConfiguration,
    RateLimited,
)
from rfp_assist.rag.generator import (
    FALLBACK_ANSWER,
    INVALID_QUESTION_ANSWER,
    SYSTEM_PROMPT,
    AnswerGenerator,
    HttpChatClient,
    WatsonxChatClient,
    build_chat_client,
    build_messages,
)
from rfp_assist.rag.retriever import HybridRetriever
from rfp_assist.rag.vectorstore import point_id

from fakes import ScriptedChat


def _chat_response(content="Yes, within 30 days."):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def _http_chat(settings, handler):
    return HttpChatClient(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))


def _index(store, embedder, doc_id, texts, title=""):
    store.upsert([
        EmbeddedPoint(
            id=point_id(doc_id, i),
            vector=embedder.embed(t),
            payload=ChunkPayload(doc_id=doc_id, title=title, text=t, chunk_index=i),
        )
        for i, t in enumerate(texts)
    ])


@pytest.fixture
def retriever(embedder, store):
    _index(store, embedder, "refunds", ["Customers may request a refund within 30 days."])
    return HybridRetriever(embedder, store)


class FailingEmbedder:
    def embed(self, text):
        raise EmbeddingServiceError("embedding endpoint down", status_code=503)


@pytest.mark.unit
class TestHttpChatClient:
    def test_request_body_and_headers(self, settings):
        seen = []

        def handler(request):
            seen.append(request)
            return _chat_response()

        messages = [{"role": "user", "content": "hi"}]
        assert _http_chat(settings, handler).complete(messages, 500, 0.3) == "Yes, within 30 days."

        body = json.loads(seen[0].content)
        assert body["messages"] == messages
        assert body["max_tokens"] == 500
        assert body["temperature"] == 0.3
        assert body["model"] == "llama3-8b-8192"
        assert seen[0].headers["authorization"] == "Bearer chat-key"

    def test_rate_limited(self, settings):
        def handler(request):
            return httpx.Response(429, headers={"retry-after": "3"}, text="slow down")

        with pytest.raises(RateLimited) as exc_info:
            _http_chat(settings, handler).complete([], 10, 0.3)
        assert exc_info.value.transient
        assert exc_info.value.retry_after == "3"

    def test_server_error_is_terminal(self, settings):
        def handler(request):
            return httpx.Response(500, text="boom")

        with pytest.raises(ChatServiceError) as exc_info:
            _http_chat(settings, handler).complete([], 10, 0.3)
        assert exc_info.value.status_code == 500
        assert not exc_info.value.transient

    def test_timeout_is_transient(self, settings):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ChatServiceError) as exc_info:
            _http_chat(settings, handler).complete([], 10, 0.3)
        assert exc_info.value.transient

    @pytest.mark.parametrize(
        "payload",
        [{}, {"choices": []}, {"choices": [{"message": {}}]}, {"choices": [{"message": {"content": 5}}]}],
    )
    def test_invalid_body(self, settings, payload):
        def handler(request):
            return httpx.Response(200, json=payload)

        with pytest.raises(ChatServiceError):
            _http_chat(settings, handler).complete([], 10, 0.3)

    def test_url_required(self, settings):
        settings.chat_url = ""
        with pytest.raises(InvalidConfiguration):
            HttpChatClient(settings)


@pytest.mark.unit
class TestWatsonxChatClient:
    def test_complete(self, settings):
        wx = MagicMock()
        wx.chat.return_value = {"choices": [{"message": {"content": "Granite says yes"}}]}

        answer = WatsonxChatClient(settings, client=wx).complete(
            [{"role": "user", "content": "q"}], 200, 0.1
        )

        assert answer == "Granite says yes"
        assert wx.chat.call_args.kwargs["params"] == {"max_tokens": 200, "temperature": 0.1}

    def test_malformed(self, settings):
        wx = MagicMock()
        wx.chat.return_value = {"results": []}
        with pytest.raises(ChatServiceError):
            WatsonxChatClient(settings, client=wx).complete([], 10, 0.3)


@pytest.mark.unit
def test_build_chat_client(settings):
    assert isinstance(build_chat_client(settings), HttpChatClient)
    settings.chat_provider = "telepathy"
    with pytest.raises(InvalidConfiguration):
        build_chat_client(settings)


@pytest.mark.unit
class TestBuildMessages:
    def test_without_history(self):
        messages = build_messages("What is the refund window?", "• 30 days")
        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
        user = messages[1]["content"]
        assert "Conversation so far" not in user
        assert "Context:\n• 30 days" in user
        assert user.endswith("Question: What is the refund window?")

    def test_with_history(self):
        history = [ConversationTurn(question="Do you offer refunds?", answer="Yes.")]
        user = build_messages("How long?", "ctx", history)[1]["content"]
        assert user.startswith("Conversation so far:\nUser: Do you offer refunds?\nAI: Yes.")

    def test_empty_context_placeholder(self):
        user = build_messages("q", "")[1]["content"]
        assert "No relevant context was found." in user

    def test_system_prompt_carries_fallback_sentence(self):
        assert FALLBACK_ANSWER in SYSTEM_PROMPT


@pytest.mark.unit
class TestAnswerGenerator:
    def test_blank_question_makes_no_calls(self, settings, embedder, store, sleeps, fake_sleep):
        chat = ScriptedChat()
        generator = AnswerGenerator(HybridRetriever(embedder, store), chat, settings, sleep=fake_sleep)

        result = generator.generate_answer("   ")

        assert result.answer == INVALID_QUESTION_ANSWER
        assert result.sources == []
        assert embedder.calls == []
        assert chat.calls == []

    def test_answer_returned_verbatim_with_sources(self, settings, retriever, fake_sleep):
        chat = ScriptedChat(["  Yes, within 30 days.\n"])
        result = AnswerGenerator(retriever, chat, settings, sleep=fake_sleep).generate_answer(
            "What is the refund policy?"
        )

        assert result.answer == "  Yes, within 30 days.\n"
        assert result.sources == ["doc:refunds#0"]
        call = chat.calls[0]
        assert call["max_tokens"] == 500
        assert call["temperature"] == 0.3
        assert "Customers may request a refund" in call["messages"][1]["content"]

    def test_history_reaches_prompt(self, settings, retriever, fake_sleep):
        chat = ScriptedChat()
        history = [ConversationTurn(question="Q1", answer="A1")]
        AnswerGenerator(retriever, chat, settings, sleep=fake_sleep).generate_answer("Q2", history)
        assert "User: Q1\nAI: A1" in chat.calls[0]["messages"][1]["content"]

    def test_rate_limit_exhausts_three_attempts(self, settings, retriever, sleeps, fake_sleep):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(429, text="rate limited")

        generator = AnswerGenerator(
            retriever, _http_chat(settings, handler), settings, sleep=fake_sleep
        )
        with pytest.raises(AnswerGenerationError) as exc_info:
            generator.generate_answer("What is the refund policy?")

        assert len(requests) == 3
        assert sleeps == [0.5, 1.0]
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, RateLimited)

    def test_server_error_is_not_retried(self, settings, retriever, sleeps, fake_sleep):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(500, text="boom")

        generator = AnswerGenerator(
            retriever, _http_chat(settings, handler), settings, sleep=fake_sleep
        )
        with pytest.raises(AnswerGenerationError) as exc_info:
            generator.generate_answer("What is the refund policy?")

        assert len(requests) == 1
        assert sleeps == []
        assert exc_info.value.attempts == 1

    def test_recovers_after_rate_limit(self, settings, retriever, sleeps, fake_sleep):
        responses = [httpx.Response(429), _chat_response("Recovered")]

        def handler(request):
            return responses.pop(0)

        result = AnswerGenerator(
            retriever, _http_chat(settings, handler), settings, sleep=fake_sleep
        ).generate_answer("What is the refund policy?")

        assert result.answer == "Recovered"
        assert sleeps == [0.5]

    def test_retrieval_failure(self, settings, store, fake_sleep):
        chat = ScriptedChat()
        generator = AnswerGenerator(
            HybridRetriever(FailingEmbedder(), store), chat, settings, sleep=fake_sleep
        )
        with pytest.raises(AnswerGenerationError) as exc_info:
            generator.generate_answer("Anything?")

        assert isinstance(exc_info.value.__cause__, EmbeddingServiceError)
        assert chat.calls == []

    def test_empty_index_still_answers(self, settings, embedder, store, fake_sleep):
        chat = ScriptedChat(["Hello!"])
        result = AnswerGenerator(
            HybridRetriever(embedder, store), chat, settings, sleep=fake_sleep
        ).generate_answer("hi")

        assert result.answer == "Hello!"
        assert result.sources == []
        assert "No relevant context was found." in chat.calls[0]["messages"][1]["content"]
