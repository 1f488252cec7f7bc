"""Unit tests for settings."""
import pytest

from rfp_assist.config import Settings


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert (s.chunk_size, s.chunk_overlap) == (1000, 150)
        assert (s.top_k, s.widen, s.alpha) == (6, 40, 0.7)
        assert s.max_context_chars == 4000
        assert (s.temperature, s.max_tokens) == (0.3, 500)
        assert (s.max_attempts, s.retry_base_delay, s.request_delay) == (3, 2.0, 1.0)
        assert s.distance == "cosine"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CHAT_API_KEY", "secret")
        monkeypatch.setenv("TOP_K", "4")
        monkeypatch.setenv("ALPHA", "0.5")
        monkeypatch.setenv("VECTOR_STORE", "milvus")
        monkeypatch.setenv("MILVUS_TLS", "yes")
        monkeypatch.delenv("MILVUS_DB", raising=False)

        s = Settings.from_env()

        assert s.chat_api_key == "secret"
        assert s.top_k == 4
        assert s.alpha == 0.5
        assert s.vector_store == "milvus"
        assert s.milvus_tls is True
        assert s.milvus_db is None

    def test_faiss_paths_in_memory_by_default_persistent_from_env(self, monkeypatch):
        monkeypatch.delenv("FAISS_INDEX_PATH", raising=False)
        monkeypatch.delenv("FAISS_META_PATH", raising=False)

        assert (Settings().faiss_index_path, Settings().faiss_meta_path) == ("", "")
        s = Settings.from_env()
        assert (s.faiss_index_path, s.faiss_meta_path) == ("data/index.faiss", "data/meta.json")

    def test_empty_faiss_paths_from_env_keep_store_in_memory(self, monkeypatch):
        monkeypatch.setenv("FAISS_INDEX_PATH", "")
        monkeypatch.setenv("FAISS_META_PATH", "")

        s = Settings.from_env()
        assert (s.faiss_index_path, s.faiss_meta_path) == ("", "")

    @pytest.mark.parametrize(
        "value,expected",
        [(None, False), ("1", True), ("TRUE", True), ("y", True), ("no", False), ("0", False)],
    )
    def test_get_bool(self, value, expected):
        assert Settings._get_bool(value) is expected
