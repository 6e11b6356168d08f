"""Per-type acquisition adapters.

Each adapter returns an :data:`AcquisitionResult`: ``Ok(Acquired)`` or a
classified ``Failure``.  :class:`AcquisitionService` picks the adapter
from the content type.
"""

from src.services.acquisition.article import ArticleAcquirer
from src.services.acquisition.podcast import PodcastAcquirer, PodcastAudioResolver
from src.services.acquisition.result import (
    Acquired,
    AcquisitionResult,
    Failure,
    Ok,
    fetch_with_retry,
)
from src.services.acquisition.service import AcquisitionService
from src.services.acquisition.video import VideoAcquirer

__all__ = [
    "Acquired",
    "AcquisitionResult",
    "AcquisitionService",
    "ArticleAcquirer",
    "Failure",
    "Ok",
    "PodcastAcquirer",
    "PodcastAudioResolver",
    "VideoAcquirer",
    "fetch_with_retry",
]
