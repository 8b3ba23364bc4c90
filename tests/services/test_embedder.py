"""
Tests for EmbeddingService.

SentenceTransformer is patched out, so these run without downloading
the model. Actual model quality is covered by the integration suite.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from contentvault.core.exceptions import OracleFailure
from contentvault.services.oracle.embedder import EmbeddingService


def fake_model(prompts=None, dimension=4):
    model = MagicMock()
    model.prompts = prompts if prompts is not None else {"query": "task: search result | query: ", "document": "title: none | text: "}
    model.get_sentence_embedding_dimension.return_value = dimension

    def encode(text, **kwargs):
        return np.full(dimension, 0.5, dtype=np.float32)

    model.encode.side_effect = encode
    return model


@pytest.fixture
def model():
    return fake_model()


@pytest.fixture
async def embedder(model):
    with patch("contentvault.services.oracle.embedder.SentenceTransformer", return_value=model):
        service = EmbeddingService(model_name="test-model", device="cpu", batch_size=8)
        await service.initialize()
        yield service
        await service.shutdown()


class TestLifecycle:

    async def test_initialize_loads_model_once(self, model):
        with patch("contentvault.services.oracle.embedder.SentenceTransformer", return_value=model) as loader:
            service = EmbeddingService(model_name="test-model", device="cpu")
            await service.initialize()
            await service.initialize()

        loader.assert_called_once_with("test-model", device="cpu")
        assert service.is_initialized
        assert service.get_embedding_dimension() == 4

    async def test_load_failure_becomes_oracle_failure(self):
        with patch("contentvault.services.oracle.embedder.SentenceTransformer", side_effect=OSError("no such model")):
            service = EmbeddingService(model_name="missing", device="cpu")
            with pytest.raises(OracleFailure):
                await service.initialize()

        assert not service.is_initialized

    async def test_dimension_before_load_comes_from_settings(self):
        from contentvault.core.config import settings

        assert EmbeddingService(device="cpu").get_embedding_dimension() == settings.EMBEDDING_DIMENSION

    async def test_shutdown_releases_model(self, embedder):
        await embedder.shutdown()

        assert embedder.model is None
        with pytest.raises(OracleFailure):
            await embedder.embed("text")

    def test_missing_cuda_falls_back_to_cpu(self):
        with patch("contentvault.services.oracle.embedder.torch.cuda.is_available", return_value=False):
            assert EmbeddingService(device="cuda").device == "cpu"


class TestEmbed:

    async def test_returns_list_of_floats(self, embedder):
        vector = await embedder.embed("Title: Sourdough")

        assert isinstance(vector, list)
        assert len(vector) == 4
        assert all(isinstance(v, float) for v in vector)

    @pytest.mark.parametrize("mode", ["document", "query"])
    async def test_mode_selects_prompt(self, embedder, model, mode):
        await embedder.embed("some text", mode=mode)

        kwargs = model.encode.call_args.kwargs
        assert kwargs["prompt_name"] == mode
        assert kwargs["normalize_embeddings"] is True

    async def test_model_without_prompts_embeds_plainly(self):
        model = fake_model(prompts={})
        with patch("contentvault.services.oracle.embedder.SentenceTransformer", return_value=model):
            service = EmbeddingService(model_name="plain", device="cpu")
            await service.initialize()

        await service.embed("text", mode="query")

        assert model.encode.call_args.kwargs["prompt_name"] is None

    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_text_rejected(self, embedder, model, text):
        with pytest.raises(OracleFailure):
            await embedder.embed(text)
        model.encode.assert_not_called()

    async def test_requires_initialize(self):
        with pytest.raises(OracleFailure):
            await EmbeddingService(device="cpu").embed("text")

    async def test_model_error_becomes_oracle_failure(self, embedder, model):
        model.encode.side_effect = RuntimeError("out of memory")

        with pytest.raises(OracleFailure):
            await embedder.embed("text")
