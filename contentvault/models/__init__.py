"""
Database Models

Import models from this module so they are registered with SQLAlchemy:

    from contentvault.models import ContentItem, ContentEmbedding
"""

from contentvault.models.content import ContentEmbedding, ContentItem

__all__ = [
    "ContentItem",
    "ContentEmbedding",
]
