"""
Answer Generator

Produces a grounded answer to a search query from formatted context blocks
using Claude. The model is told to answer only from the supplied context and
to say so when the context is insufficient.
"""

import logging
from typing import List, Optional

from anthropic import AsyncAnthropic

from contentvault.core.config import settings
from contentvault.core.exceptions import OracleFailure

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a helpful assistant that answers questions about the user's saved content: notes, articles, links, images and videos.

Your task is to:
1. Answer the user's question using ONLY the information provided in the context
2. Be accurate and factual - don't make up information
3. If the context doesn't contain enough information to answer, say so clearly
4. Be concise but comprehensive
5. When referencing information, cite it using [Document N] notation

Remember: You can ONLY use information from the provided context."""


class AnswerGenerator:
    """
    RAG answer generation using the Claude API.

    Usage:
    ------
    generator = AnswerGenerator()
    answer = await generator.generate_answer(
        query="What did I save about sourdough?",
        context_blocks=["[Document 1]\\nTitle: ...", "[Document 2]\\n..."],
    )
    """

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        max_context_chars: Optional[int] = None,
    ):
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens or settings.ANTHROPIC_MAX_TOKENS
        self.temperature = settings.ANTHROPIC_TEMPERATURE if temperature is None else temperature
        self.max_context_chars = max_context_chars or settings.RAG_MAX_CONTEXT_CHARS

        api_key = api_key or settings.ANTHROPIC_API_KEY
        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncAnthropic(api_key=api_key)
        else:
            logger.warning("ANTHROPIC_API_KEY not set; answer generation is unavailable")
            self.client = None

        logger.info(f"AnswerGenerator initialized with model={self.model}, max_tokens={self.max_tokens}")

    async def generate_answer(self, query: str, context_blocks: List[str]) -> str:
        """
        Generate an answer for query from context_blocks.

        Raises:
            OracleFailure: If the client is missing or the API call fails
        """
        if self.client is None:
            raise OracleFailure("Anthropic client not configured")

        context = self._assemble_context(context_blocks)
        user_message = f"""Context from the user's saved content:

{context}

---

Question: {query}

Please answer the question based on the context provided above."""

        logger.info(f"Generating answer for query: '{query[:50]}' with {len(context_blocks)} documents")

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": user_message}],
            )
        except Exception as e:
            logger.error(f"Error generating answer: {e}")
            raise OracleFailure(f"Answer generation failed: {e}") from e

        answer = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not answer.strip():
            raise OracleFailure("Answer generation returned no text")

        logger.info(
            f"Generated answer: {len(answer)} chars, "
            f"{response.usage.input_tokens + response.usage.output_tokens} tokens"
        )
        return answer

    def _assemble_context(self, context_blocks: List[str]) -> str:
        """Join blocks in rank order, dropping the tail once the budget is spent."""
        parts: List[str] = []
        used = 0
        for i, block in enumerate(context_blocks):
            if parts and used + len(block) > self.max_context_chars:
                logger.info(f"Context truncated at {i} of {len(context_blocks)} documents")
                break
            parts.append(block)
            used += len(block)
        return "\n\n---\n\n".join(parts)
