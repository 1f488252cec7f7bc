"""
Shared fixtures: settings, an in-memory FAISS store and fake model providers.
No test talks to a real embedding, chat or vector service.
"""
import pytest

from fakes import HashingEmbedder
from rfp_assist.config import Settings
from rfp_assist.rag.faiss_store import FaissStore


@pytest.fixture
def settings():
    return Settings(
        embedding_url="https://embeddings.test/v1/embeddings",
        embedding_api_key="embed-key",
        chat_url="https://chat.test/v1/chat/completions",
        chat_api_key="chat-key",
        retry_base_delay=0.5,
        request_delay=1.5,
    )


@pytest.fixture
def store(settings):
    return FaissStore(settings)


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append
