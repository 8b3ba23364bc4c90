"""
Content Analyzer

Categorizes incoming content with Claude: a content type, open metadata
(always carrying a "tags" list), descriptive labels and, when the caller
did not provide them, a generated title and description.

The analyzer never degrades on its own. Any failure (transport error,
missing API key, unparseable answer) raises OracleFailure and the content
pipeline decides what default to fall back to.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from contentvault.core.config import settings
from contentvault.core.exceptions import OracleFailure
from contentvault.schemas.content import AnalysisResult

logger = logging.getLogger(__name__)

# First {...} block in the answer, tolerating prose or code fences around it
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


TEXT_PROMPT = """Analyze the following content and categorize it.

{fields}

Return a JSON object with the following structure:
{{
  "type": "category of content (e.g., article, note, code, recipe, tutorial, review)",
  "metadata": {{
    "tags": ["relevant", "tags"],
    "category": "specific category within the type",
    "sentiment": "positive, negative or neutral if applicable",
    "language": "detected language",
    "price": null or a number if price information is present
  }},
  "labels": ["descriptive", "labels"]{extra}
}}

Only return the JSON object, no additional text."""


IMAGE_PROMPT = """Analyze this image and categorize it.

Return a JSON object with the following structure:
{
  "type": "image",
  "metadata": {
    "tags": ["visual", "tags"],
    "category": "photo, diagram, screenshot, artwork, ...",
    "colors": ["dominant", "colors"],
    "objects": ["detected", "objects"],
    "scene": "description of the scene"
  },
  "labels": ["descriptive", "labels"],
  "generatedTitle": "a concise title for this image",
  "generatedDescription": "a brief description of what is in the image"
}

Only return the JSON object, no additional text."""


URL_PROMPT = """Analyze the following URL and its content (if provided) to categorize it.

URL: {url}
{preview}
Return a JSON object with the following structure:
{{
  "type": "category (e.g., article, video, product, documentation)",
  "metadata": {{
    "tags": ["relevant", "tags"],
    "domain": "domain name",
    "category": "specific category"
  }},
  "labels": ["descriptive", "labels"],
  "generatedTitle": "a concise title based on the URL/content",
  "generatedDescription": "a brief description"
}}

Only return the JSON object, no additional text."""


def parse_analysis(text: str) -> AnalysisResult:
    """
    Extract the JSON object from a model answer.

    Raises:
        OracleFailure: If no JSON object can be found, decoded or validated
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise OracleFailure("Analysis response contained no JSON object")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise OracleFailure(f"Analysis response was not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise OracleFailure("Analysis response was not a JSON object")

    try:
        result = AnalysisResult.model_validate(data)
    except (ValidationError, TypeError, ValueError) as e:
        raise OracleFailure(f"Analysis response had an unexpected shape: {e}") from e
    result.metadata.setdefault("tags", [])
    return result


class ContentAnalyzer:
    """
    Claude-backed content categorization.

    Usage:
    ------
    analyzer = ContentAnalyzer()
    result = await analyzer.analyze_text("Preheat the oven to 200C ...")
    result.type    # "recipe"
    result.labels  # ["cooking", "baking"]
    """

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
        max_input_chars: Optional[int] = None,
    ):
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens
        self.max_input_chars = max_input_chars or settings.ANALYSIS_MAX_INPUT_CHARS

        api_key = api_key or settings.ANTHROPIC_API_KEY
        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncAnthropic(api_key=api_key)
        else:
            logger.warning("ANTHROPIC_API_KEY not set; content analysis will use defaults")
            self.client = None

    async def analyze_text(
        self,
        content: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> AnalysisResult:
        fields = [f"Content: {self._clip(content)}"]
        if title:
            fields.append(f"Title: {title}")
        if description:
            fields.append(f"Description: {description}")

        extra = []
        if not title:
            extra.append('"generatedTitle": "a concise title for this content"')
        if not description:
            extra.append('"generatedDescription": "a brief description of this content"')
        extra_fields = "".join(f",\n  {line}" for line in extra)

        prompt = TEXT_PROMPT.format(fields="\n".join(fields), extra=extra_fields)
        return await self._analyze([{"type": "text", "text": prompt}], "text")

    async def analyze_image(
        self,
        image_data: Optional[str] = None,
        image_url: Optional[str] = None,
        media_type: str = "image/jpeg",
    ) -> AnalysisResult:
        """
        Analyze an image given as base64 data or as a URL Claude can fetch.
        """
        if image_data:
            source: Dict[str, Any] = {"type": "base64", "media_type": media_type, "data": image_data}
        elif image_url:
            source = {"type": "url", "url": image_url}
        else:
            raise OracleFailure("Image analysis needs image data or an image URL")

        blocks = [
            {"type": "image", "source": source},
            {"type": "text", "text": IMAGE_PROMPT},
        ]
        return await self._analyze(blocks, "image")

    async def analyze_url(self, url: str, content: Optional[str] = None) -> AnalysisResult:
        preview = f"Content Preview: {self._clip(content)}\n" if content else ""
        prompt = URL_PROMPT.format(url=url, preview=preview)
        return await self._analyze([{"type": "text", "text": prompt}], "url")

    def _clip(self, text: str) -> str:
        if len(text) <= self.max_input_chars:
            return text
        return text[:self.max_input_chars] + "..."

    async def _analyze(self, blocks: List[Dict[str, Any]], kind: str) -> AnalysisResult:
        if self.client is None:
            raise OracleFailure("Anthropic client not configured")

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.0,
                messages=[{"role": "user", "content": blocks}],
            )
            text = "".join(
                block.text for block in response.content if getattr(block, "type", None) == "text"
            )
        except Exception as e:
            logger.error(f"Error analyzing {kind} content: {e}")
            raise OracleFailure(f"{kind} analysis failed: {e}") from e

        result = parse_analysis(text)
        logger.info(f"Analyzed {kind} content: type={result.type}, labels={result.labels}")
        return result
