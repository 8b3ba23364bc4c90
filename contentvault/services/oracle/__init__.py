"""
AI oracle: content analysis, embeddings and answer generation.

The Oracle facade is what the pipeline and search engine depend on; the
three services behind it can be swapped independently (tests use fakes).
"""

from typing import List, Optional

from contentvault.schemas.content import AnalysisResult
from contentvault.services.oracle.analyzer import ContentAnalyzer
from contentvault.services.oracle.embedder import EmbeddingService, EmbedMode
from contentvault.services.oracle.generator import AnswerGenerator


class Oracle:
    """Single entry point for every model call the pipeline makes."""

    def __init__(self, analyzer: ContentAnalyzer, embedder: EmbeddingService, generator: AnswerGenerator):
        self.analyzer = analyzer
        self.embedder = embedder
        self.generator = generator

    async def initialize(self) -> None:
        await self.embedder.initialize()

    async def shutdown(self) -> None:
        await self.embedder.shutdown()

    async def analyze_text(
        self,
        content: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> AnalysisResult:
        return await self.analyzer.analyze_text(content, title=title, description=description)

    async def analyze_image(
        self,
        image_data: Optional[str] = None,
        image_url: Optional[str] = None,
        media_type: str = "image/jpeg",
    ) -> AnalysisResult:
        return await self.analyzer.analyze_image(image_data=image_data, image_url=image_url, media_type=media_type)

    async def analyze_url(self, url: str, content: Optional[str] = None) -> AnalysisResult:
        return await self.analyzer.analyze_url(url, content=content)

    async def embed(self, text: str, mode: EmbedMode = "document") -> List[float]:
        return await self.embedder.embed(text, mode=mode)

    async def generate_answer(self, query: str, context_blocks: List[str]) -> str:
        return await self.generator.generate_answer(query, context_blocks)


__all__ = [
    "AnswerGenerator",
    "ContentAnalyzer",
    "EmbedMode",
    "EmbeddingService",
    "Oracle",
]
