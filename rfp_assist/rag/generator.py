"""Answer generation over retrieved context.

Builds the prompt from hybrid-retrieval context and prior conversation
turns, calls a chat model with retry on rate limiting, and returns the
answer with the citations of the chunks it was shown.
"""

import logging
import time
from typing import Any, Callable, Protocol, Sequence

import httpx
from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import ModelInference
from ibm_watsonx_ai.wml_client_error import ApiRequestFailure

from rfp_assist.config import Settings
from rfp_assist.models import AnswerResult, ConversationTurn
from rfp_assist.rag.context import build_context
from rfp_assist.rag.errors import (
    AnswerGenerationError,
    ChatServiceError,
    InvalidConfiguration,
    RagError,
    RateLimited,
)
from rfp_assist.rag.http_utils import auth_headers, response_detail
from rfp_assist.rag.retriever import HybridRetriever
from rfp_assist.rag.retry import linear_backoff, retry_call

logger = logging.getLogger(__name__)

FALLBACK_ANSWER = "I'm sorry, I don't have enough information to answer this question."
INVALID_QUESTION_ANSWER = "Please provide a valid question."

SYSTEM_PROMPT = (
    "You are an expert in compliance and policy enforcement who answers questions from "
    "Requests for Proposal and from colleagues on behalf of the organization. "
    "Decide which kind of message you received and answer accordingly:\n"
    "1. Greetings and small talk (for example 'hi', 'thanks', 'how are you'): reply briefly "
    "and politely. Do not use the document context.\n"
    "2. Questions about the organization's policies, security, compliance, products or "
    "processes: answer strictly from the provided context. Be clear, authoritative and "
    "focused. If the answer is a direct YES or NO, give a concise explanation of the reason "
    "based on the context. If the context does not contain the information, respond with "
    f'exactly: "{FALLBACK_ANSWER}"\n'
    "3. General-knowledge questions unrelated to the organization, when the context is "
    "irrelevant: answer from your own knowledge.\n"
    "4. Follow-up questions: use the conversation so far to resolve references and stay "
    "consistent with answers already given.\n"
    "Do not mention the documents, sections or sources, do not repeat the question, and do "
    "not add prefixes such as 'Answer:'. Just provide the answer."
)


class ChatProvider(Protocol):
    def complete(
        self, messages: list[dict[str, str]], max_tokens: int, temperature: float
    ) -> str: ...


class HttpChatClient:
    """Client for an OpenAI-compatible chat-completions endpoint.

    Each call is a single attempt; retry policy lives in the generator.
    """

    def __init__(self, settings: Settings, client: httpx.Client | None = None):
        if not settings.chat_url:
            raise InvalidConfiguration("chat_url is required for the http provider")
        self.settings = settings
        self.url = settings.chat_url
        self.headers = auth_headers(settings.chat_auth, settings.chat_api_key)
        self.client = client or httpx.Client(timeout=settings.http_timeout)

    def complete(
        self, messages: list[dict[str, str]], max_tokens: int, temperature: float
    ) -> str:
        body: dict[str, Any] = {
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.settings.chat_model:
            body["model"] = self.settings.chat_model
        try:
            response = self.client.post(self.url, json=body, headers=self.headers)
        except httpx.HTTPError as e:
            raise ChatServiceError(f"Chat request failed: {e}", transient=True) from e

        if response.status_code == 429:
            raise RateLimited(
                f"Chat API rate limited: {response_detail(response)}",
                retry_after=response.headers.get("retry-after"),
            )
        if not response.is_success:
            raise ChatServiceError(
                f"Chat API error: {response_detail(response)}",
                status_code=response.status_code,
            )
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise ChatServiceError(
                "Invalid chat response: missing choices[0].message.content"
            ) from None
        if not isinstance(content, str):
            raise ChatServiceError("Invalid chat response: content is not text")
        return content

    def close(self) -> None:
        self.client.close()


class WatsonxChatClient:
    def __init__(self, settings: Settings, client: Any = None):
        self.settings = settings
        if client is None:
            credentials = Credentials(
                api_key=settings.ibm_cloud_api_key,
                url=f"https://{settings.watsonx_region}.ml.cloud.ibm.com",
            )
            client = ModelInference(
                model_id=settings.watsonx_gen_model,
                project_id=settings.watsonx_project_id,
                credentials=credentials,
            )
        self.client = client

    def complete(
        self, messages: list[dict[str, str]], max_tokens: int, temperature: float
    ) -> str:
        params = {"max_tokens": max_tokens, "temperature": float(temperature)}
        try:
            data = self.client.chat(messages=messages, params=params)
        except ApiRequestFailure as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            if status == 429:
                raise RateLimited(f"watsonx.ai rate limited: {e}") from e
            raise ChatServiceError(
                f"watsonx.ai chat failed: {e}",
                status_code=status,
                transient=status is not None and status >= 500,
            ) from e
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ChatServiceError(
                "Invalid watsonx.ai chat response: missing choices[0].message.content"
            ) from None


def build_chat_client(settings: Settings) -> ChatProvider:
    """Create the chat provider named by ``settings.chat_provider``."""
    if settings.chat_provider == "http":
        return HttpChatClient(settings)
    if settings.chat_provider == "watsonx":
        return WatsonxChatClient(settings)
    raise InvalidConfiguration(f"Unknown chat provider: {settings.chat_provider!r}")


def format_history(history: Sequence[ConversationTurn]) -> str:
    lines = []
    for turn in history:
        lines.append(f"User: {turn.question}")
        lines.append(f"AI: {turn.answer}")
    return "\n".join(lines)


def build_messages(
    question: str, context: str, history: Sequence[ConversationTurn] = ()
) -> list[dict[str, str]]:
    """Compose the chat messages for one question."""
    parts = []
    if history:
        parts.append(f"Conversation so far:\n{format_history(history)}")
    parts.append(f"Context:\n{context or 'No relevant context was found.'}")
    parts.append(f"Question: {question}")
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "\n\n".join(parts)},
    ]


def _is_transient(error: Exception) -> bool:
    return isinstance(error, ChatServiceError) and error.transient


class AnswerGenerator:
    def __init__(
        self,
        retriever: HybridRetriever,
        chat: ChatProvider,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.retriever = retriever
        self.chat = chat
        self.settings = settings
        self.sleep = sleep

    def generate_answer(
        self, question: str, history: Sequence[ConversationTurn] = ()
    ) -> AnswerResult:
        """Answer one question from retrieved context.

        Args:
            question: Question text.
            history: Prior turns, oldest first.

        Returns:
            AnswerResult with the model's text and one citation per
            retrieved chunk.

        Raises:
            AnswerGenerationError: When retrieval fails or the chat call
                fails for good.
        """
        if not question or not question.strip():
            return AnswerResult(answer=INVALID_QUESTION_ANSWER, sources=[])

        try:
            chunks = self.retriever.search(
                question,
                top_k=self.settings.top_k,
                widen=self.settings.widen,
                alpha=self.settings.alpha,
            )
        except RagError as e:
            logger.error(f"Retrieval failed: {e}")
            raise AnswerGenerationError(f"Retrieval failed: {e}") from e

        prompt_context = build_context(chunks, self.settings.max_context_chars)
        messages = build_messages(question, prompt_context.context, history)

        outcome = retry_call(
            lambda: self.chat.complete(
                messages,
                max_tokens=self.settings.max_tokens,
                temperature=self.settings.temperature,
            ),
            max_attempts=self.settings.max_attempts,
            backoff=linear_backoff(self.settings.retry_base_delay),
            should_retry=_is_transient,
            sleep=self.sleep,
            label="Chat completion",
        )
        if not outcome.ok:
            raise AnswerGenerationError(
                f"Failed to generate answer after {outcome.attempts} attempt(s): {outcome.error}",
                attempts=outcome.attempts,
            ) from outcome.error

        return AnswerResult(answer=outcome.value, sources=prompt_context.sources)
