"""
Video generation service with multi-provider support.
"""
from .base import (
    ProviderStatus,
    ProviderSubmission,
    ProviderUpdate,
    VideoGenerationError,
    VideoGenerationProvider,
    VideoGenerationRequest,
)
from .factory import VideoProviderFactory

__all__ = [
    "ProviderStatus",
    "ProviderSubmission",
    "ProviderUpdate",
    "VideoGenerationError",
    "VideoGenerationProvider",
    "VideoGenerationRequest",
    "VideoProviderFactory",
]
