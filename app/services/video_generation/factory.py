"""
Factory for creating video generation providers based on configuration.
"""
import logging

from app.services.video_generation.base import VideoGenerationProvider
from app.services.video_generation.providers.replicate import ReplicateProvider
from app.services.video_generation.providers.video_api import VideoApiProvider

logger = logging.getLogger(__name__)


class VideoProviderFactory:
    """Factory for creating video generation providers."""

    PROVIDERS = {
        "replicate": ReplicateProvider,
        "video_api": VideoApiProvider,
    }

    @classmethod
    def create(cls, provider_name: str, config: dict) -> VideoGenerationProvider:
        """
        Create provider instance by name.

        Raises:
            ValueError: If provider name is unknown
        """
        provider_class = cls.PROVIDERS.get(provider_name.lower())

        if not provider_class:
            available = ", ".join(cls.PROVIDERS.keys())
            raise ValueError(
                f"Unknown provider: {provider_name}. "
                f"Available providers: {available}"
            )

        logger.info("video_provider_created", extra={"provider": provider_name})
        provider = provider_class(config)

        if not provider.is_available():
            logger.warning("video_provider_not_configured", extra={"provider": provider_name})

        return provider

    @classmethod
    def config_from_settings(cls, provider_name: str, settings) -> dict:
        if provider_name == "replicate":
            return {
                "api_token": settings.replicate_api_token,
                "api_url": settings.replicate_api_url,
                "timeout": settings.replicate_timeout,
                "model": settings.replicate_standard_model,
            }
        if provider_name == "video_api":
            return {
                "api_url": settings.video_api_url,
                "api_token": settings.video_api_token,
                "timeout": settings.video_api_timeout,
            }
        raise ValueError(f"Provider {provider_name} not supported in settings")

    @classmethod
    def create_from_settings(cls, provider_name: str, settings) -> VideoGenerationProvider:
        return cls.create(provider_name, cls.config_from_settings(provider_name, settings))

    @classmethod
    def create_all_from_settings(cls, settings) -> dict[str, VideoGenerationProvider]:
        """One instance per registered provider, keyed by provider name."""
        return {name: cls.create_from_settings(name, settings) for name in cls.PROVIDERS}
