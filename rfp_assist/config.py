"""Application configuration settings.

This module defines the Settings dataclass that holds every tunable of the
retrieval and answer-generation core. Components receive a Settings instance
through their constructors; only entry points read the environment, via
``Settings.from_env``.
"""

from dataclasses import dataclass
import os


@dataclass
class Settings:
    """Settings for the RFP answering core.

    Attributes:
        embedding_provider: Embedding backend, ``http`` or ``watsonx``.
        embedding_url: Embedding endpoint URL (Azure OpenAI style).
        embedding_api_key: API key for the embedding endpoint.
        embedding_auth: How the key is sent, ``api-key`` header or ``bearer``.
        embedding_model: Model name sent in the request body (optional).
        chat_provider: Chat backend, ``http`` or ``watsonx``.
        chat_url: Chat-completion endpoint URL.
        chat_api_key: API key for the chat endpoint.
        chat_auth: How the key is sent, ``api-key`` header or ``bearer``.
        chat_model: Chat model name.
        ibm_cloud_api_key: IBM Cloud API key for watsonx.ai.
        watsonx_region: Watsonx.ai service region.
        watsonx_project_id: Watsonx.ai project ID.
        watsonx_embed_model: Watsonx.ai embedding model ID.
        watsonx_gen_model: Watsonx.ai chat model ID.
        vector_store: Vector store backend, ``faiss`` or ``milvus``.
        collection_name: Name of the vector collection.
        distance: Similarity metric, ``cosine`` or ``dot``.
        faiss_index_path: Path to the FAISS index file. Empty (the dataclass
            default) keeps the index in memory; ``from_env`` defaults to
            ``data/index.faiss``.
        faiss_meta_path: Path to the FAISS metadata file. Empty keeps it in
            memory; ``from_env`` defaults to ``data/meta.json``.
        milvus_host: Milvus database host.
        milvus_port: Milvus database port.
        milvus_db: Milvus database name (optional).
        milvus_tls: Whether to use TLS for Milvus.
        chunk_size: Characters per chunk.
        chunk_overlap: Characters shared by consecutive chunks.
        top_k: Number of chunks passed to the prompt.
        widen: Size of the semantic candidate pool before keyword re-ranking.
        alpha: Weight of vector similarity in the fused score.
        max_context_chars: Character budget of the prompt context.
        temperature: Generation temperature.
        max_tokens: Maximum tokens generated per answer.
        max_attempts: Attempt ceiling for chat calls.
        retry_base_delay: Base delay in seconds of the linear retry backoff.
        request_delay: Delay in seconds between batch generator calls.
        http_timeout: Timeout in seconds for outbound HTTP calls.
    """

    embedding_provider: str = "http"
    embedding_url: str = ""
    embedding_api_key: str = ""
    embedding_auth: str = "api-key"
    embedding_model: str = ""

    chat_provider: str = "http"
    chat_url: str = "https://api.groq.com/openai/v1/chat/completions"
    chat_api_key: str = ""
    chat_auth: str = "bearer"
    chat_model: str = "llama3-8b-8192"

    ibm_cloud_api_key: str = ""
    watsonx_region: str = "us-south"
    watsonx_project_id: str = ""
    watsonx_embed_model: str = "ibm/granite-embedding-30m-english"
    watsonx_gen_model: str = "ibm/granite-3-8b-instruct"

    vector_store: str = "faiss"
    collection_name: str = "documents"
    distance: str = "cosine"
    faiss_index_path: str = ""
    faiss_meta_path: str = ""
    milvus_host: str = "localhost"
    milvus_port: int = 19530
    milvus_db: str | None = None
    milvus_tls: bool = False

    chunk_size: int = 1000
    chunk_overlap: int = 150
    top_k: int = 6
    widen: int = 40
    alpha: float = 0.7
    max_context_chars: int = 4000

    temperature: float = 0.3
    max_tokens: int = 500
    max_attempts: int = 3
    retry_base_delay: float = 2.0
    request_delay: float = 1.0
    http_timeout: float = 30.0

    @staticmethod
    def _get_bool(value: str | None, default: bool = False) -> bool:
        """Convert string value to boolean.

        Args:
            value: String value to convert.
            default: Default value if value is None.

        Returns:
            Boolean value.
        """
        if value is None:
            return default
        return value.lower() in {"1", "true", "t", "yes", "y"}

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables.

        Unlike the dataclass defaults, which keep the FAISS store in memory,
        unset ``FAISS_INDEX_PATH`` and ``FAISS_META_PATH`` fall back to files under
        ``data/``, so entry points persist the index across runs. Set both to an
        empty string for an in-memory store.

        Returns:
            Settings instance with values loaded from environment.
        """
        return cls(
            embedding_provider=os.getenv("EMBEDDING_PROVIDER", "http"),
            embedding_url=os.getenv("EMBEDDING_URL", ""),
            embedding_api_key=os.getenv("EMBEDDING_API_KEY", ""),
            embedding_auth=os.getenv("EMBEDDING_AUTH", "api-key"),
            embedding_model=os.getenv("EMBEDDING_MODEL", ""),
            chat_provider=os.getenv("CHAT_PROVIDER", "http"),
            chat_url=os.getenv(
                "CHAT_URL", "https://api.groq.com/openai/v1/chat/completions"
            ),
            chat_api_key=os.getenv("CHAT_API_KEY", ""),
            chat_auth=os.getenv("CHAT_AUTH", "bearer"),
            chat_model=os.getenv("CHAT_MODEL", "llama3-8b-8192"),
            ibm_cloud_api_key=os.getenv("IBM_CLOUD_API_KEY", ""),
            watsonx_region=os.getenv("WATSONX_REGION", "us-south"),
            watsonx_project_id=os.getenv("WATSONX_PROJECT_ID", ""),
            watsonx_embed_model=os.getenv(
                "WATSONX_EMBED_MODEL",
                "ibm/granite-embedding-30m-english",
            ),
            watsonx_gen_model=os.getenv(
                "WATSONX_GEN_MODEL", "ibm/granite-3-8b-instruct"
            ),
            vector_store=os.getenv("VECTOR_STORE", "faiss"),
            collection_name=os.getenv("COLLECTION_NAME", "documents"),
            distance=os.getenv("VECTOR_DISTANCE", "cosine"),
            faiss_index_path=os.getenv("FAISS_INDEX_PATH", "data/index.faiss"),
            faiss_meta_path=os.getenv("FAISS_META_PATH", "data/meta.json"),
            milvus_host=os.getenv("MILVUS_HOST", "localhost"),
            milvus_port=int(os.getenv("MILVUS_PORT", "19530")),
            milvus_db=os.getenv("MILVUS_DB"),
            milvus_tls=cls._get_bool(os.getenv("MILVUS_TLS"), False),
            chunk_size=int(os.getenv("CHUNK_SIZE", "1000")),
            chunk_overlap=int(os.getenv("CHUNK_OVERLAP", "150")),
            top_k=int(os.getenv("TOP_K", "6")),
            widen=int(os.getenv("WIDEN", "40")),
            alpha=float(os.getenv("ALPHA", "0.7")),
            max_context_chars=int(os.getenv("MAX_CONTEXT_CHARS", "4000")),
            temperature=float(os.getenv("TEMPERATURE", "0.3")),
            max_tokens=int(os.getenv("MAX_TOKENS", "500")),
            max_attempts=int(os.getenv("MAX_ATTEMPTS", "3")),
            retry_base_delay=float(os.getenv("RETRY_BASE_DELAY", "2.0")),
            request_delay=float(os.getenv("REQUEST_DELAY", "1.0")),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "30.0")),
        )
