"""Dispatches a content item to the acquisition adapter for its type."""

from __future__ import annotations

from src.models.content import ContentItem, ContentType
from src.services.acquisition.article import ArticleAcquirer
from src.services.acquisition.podcast import PodcastAcquirer
from src.services.acquisition.result import AcquisitionResult, Failure
from src.services.acquisition.video import VideoAcquirer
from src.utils.error_classifier import AcquisitionSubtype, ErrorCategory


class AcquisitionService:
    """Routes each :class:`ContentType` to its adapter.

    Adapters that are not configured (``None``) produce an
    ``ACQUISITION_FAILED`` result rather than raising.
    """

    def __init__(
        self,
        article: ArticleAcquirer,
        video: VideoAcquirer | None = None,
        podcast: PodcastAcquirer | None = None,
    ) -> None:
        self._article = article
        self._video = video
        self._podcast = podcast

    async def acquire(self, item: ContentItem) -> AcquisitionResult:
        if item.type is ContentType.VIDEO:
            if self._video is None:
                return _unconfigured(AcquisitionSubtype.TRANSCRIPT_FAILED, "video")
            return await self._video.acquire(item.url)
        if item.type is ContentType.PODCAST:
            if self._podcast is None:
                return _unconfigured(AcquisitionSubtype.AUDIO_RESOLUTION_FAILED, "podcast")
            return await self._podcast.acquire(item)
        if item.type is ContentType.SOCIAL_POST:
            return await self._article.acquire_social_post(item.url)
        if item.type is ContentType.DOCUMENT:
            return await self._article.acquire_document(item)
        return await self._article.acquire_article(item.url)


def _unconfigured(subtype: AcquisitionSubtype, kind: str) -> Failure:
    return Failure(
        category=ErrorCategory.ACQUISITION_FAILED,
        subtype=subtype,
        detail=f"no {kind} provider configured",
    )
