"""Video metadata and transcript providers."""

from src.providers.video.supadata_provider import SupadataVideoProvider

__all__ = ["SupadataVideoProvider"]
