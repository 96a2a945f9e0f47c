"""
Content Layer

Read-only data providers queried by id. Slices and the orchestrator only
ever see the ContentRepository interface.
"""

from .repository import ContentRepository, InMemoryContentRepository
from .catalog import default_repository, STARTER_CARD_IDS, ALLIANCE_CARD_IDS

__all__ = [
    "ContentRepository",
    "InMemoryContentRepository",
    "default_repository",
    "STARTER_CARD_IDS",
    "ALLIANCE_CARD_IDS",
]
