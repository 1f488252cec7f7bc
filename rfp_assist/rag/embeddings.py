"""Embedding providers.

Turns text into fixed-length vectors through a remote embedding model. There
is no retry and no caching at this layer: one call, one outbound request.
"""

from typing import Any, Protocol

import httpx
from ibm_watsonx_ai import Credentials
from ibm_watsonx_ai.foundation_models import Embeddings as WXEmbeddings
from ibm_watsonx_ai.wml_client_error import ApiRequestFailure

from rfp_assist.config import Settings
from rfp_assist.rag.errors import EmbeddingServiceError, InvalidConfiguration
from rfp_assist.rag.http_utils import auth_headers, response_detail


class EmbeddingProvider(Protocol):
    def embed(self, text: str) -> list[float]: ...


def _as_vector(value: Any) -> list[float]:
    if not isinstance(value, list) or not value:
        raise EmbeddingServiceError(
            f"Invalid embedding response: expected a non-empty array, got {type(value).__name__}"
        )
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
        raise EmbeddingServiceError("Invalid embedding response: non-numeric values")
    return [float(v) for v in value]


class HttpEmbeddingClient:
    """Client for an OpenAI-compatible embeddings endpoint.

    Sends ``{"input": text}`` and expects ``{"data": [{"embedding": [...]}]}``;
    any other shape is an error.
    """

    def __init__(self, settings: Settings, client: httpx.Client | None = None):
        if not settings.embedding_url:
            raise InvalidConfiguration("embedding_url is required for the http provider")
        self.settings = settings
        self.url = settings.embedding_url
        self.headers = auth_headers(settings.embedding_auth, settings.embedding_api_key)
        self.client = client or httpx.Client(timeout=settings.http_timeout)

    def embed(self, text: str) -> list[float]:
        body: dict[str, Any] = {"input": text}
        if self.settings.embedding_model:
            body["model"] = self.settings.embedding_model
        try:
            response = self.client.post(self.url, json=body, headers=self.headers)
        except httpx.HTTPError as e:
            raise EmbeddingServiceError(f"Embeddings request failed: {e}") from e

        if not response.is_success:
            raise EmbeddingServiceError(
                f"Embeddings error: {response_detail(response)}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingServiceError("Invalid embedding response: body is not JSON") from e

        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError):
            raise EmbeddingServiceError(
                "Invalid embedding response: missing data[0].embedding"
            ) from None
        return _as_vector(vector)

    def close(self) -> None:
        self.client.close()


class WatsonxEmbeddingClient:
    def __init__(self, settings: Settings, client: Any = None):
        self.settings = settings
        if client is None:
            credentials = Credentials(
                api_key=settings.ibm_cloud_api_key,
                url=f"https://{settings.watsonx_region}.ml.cloud.ibm.com",
            )
            client = WXEmbeddings(
                model_id=settings.watsonx_embed_model,
                project_id=settings.watsonx_project_id,
                credentials=credentials,
            )
        self.client = client

    def embed(self, text: str) -> list[float]:
        try:
            result = self.client.embed_query(text)
        except ApiRequestFailure as e:
            status = getattr(getattr(e, "response", None), "status_code", None)
            raise EmbeddingServiceError(
                f"watsonx.ai embedding failed: {e}", status_code=status
            ) from e

        data = result.get_result() if hasattr(result, "get_result") else result
        # {"results": [{"embedding": [...]}]} from the raw REST shape
        if isinstance(data, dict):
            results = data.get("results")
            if isinstance(results, list) and results and isinstance(results[0], dict):
                return _as_vector(results[0].get("embedding"))
            return _as_vector(data.get("embedding"))
        return _as_vector(data)


def build_embedder(settings: Settings) -> EmbeddingProvider:
    """Create the embedding provider named by ``settings.embedding_provider``."""
    if settings.embedding_provider == "http":
        return HttpEmbeddingClient(settings)
    if settings.embedding_provider == "watsonx":
        return WatsonxEmbeddingClient(settings)
    raise InvalidConfiguration(
        f"Unknown embedding provider: {settings.embedding_provider!r}"
    )
