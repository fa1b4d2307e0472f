"""
Wires the generation services from settings. Each service receives its
collaborators through its constructor; this is the only place that reads
settings for them.
"""
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache

from sqlalchemy.orm import sessionmaker

from app.services.compensations.service import RefundCompensator
from app.services.generations.catalog import ProviderCatalog
from app.services.generations.dispatcher import GenerationDispatcher
from app.services.generations.reconciler import CompletionReconciler
from app.services.generations.sweep import PollingSweep
from app.services.prompt_enhancer.service import PromptEnhancer
from app.services.transcoding.client import GifConverterClient
from app.services.transcoding.pipeline import TranscodingPipeline
from app.services.video_generation import VideoGenerationProvider, VideoProviderFactory
from app.storage.base import get_storage


@dataclass
class GenerationServices:
    catalog: ProviderCatalog
    providers: dict[str, VideoGenerationProvider]
    compensator: RefundCompensator
    dispatcher: GenerationDispatcher
    reconciler: CompletionReconciler
    sweep: PollingSweep

    def close(self) -> None:
        for provider in self.providers.values():
            provider.close()
        self.reconciler.pipeline.client.close()


def build_generation_services(settings, session_factory: sessionmaker) -> GenerationServices:
    catalog = ProviderCatalog.from_settings(settings)
    providers = VideoProviderFactory.create_all_from_settings(settings)
    compensator = RefundCompensator(catalog)
    pipeline = TranscodingPipeline(
        client=GifConverterClient(
            base_url=settings.gif_converter_url,
            api_key=settings.gif_converter_api_key,
            timeout=settings.gif_converter_timeout,
        ),
        storage=get_storage(settings),
        fps=settings.gif_converter_fps,
        poll_interval=settings.gif_converter_poll_interval,
        max_attempts=settings.gif_converter_max_attempts,
    )
    dispatcher = GenerationDispatcher(
        session_factory=session_factory,
        catalog=catalog,
        providers=providers,
        enhancer=PromptEnhancer.from_settings(settings),
        compensator=compensator,
        webhook_base_url=settings.webhook_base_url,
    )
    reconciler = CompletionReconciler(
        session_factory=session_factory,
        providers=providers,
        pipeline=pipeline,
        compensator=compensator,
        lease_seconds=settings.transcode_lease_seconds,
    )
    sweep = PollingSweep(
        session_factory=session_factory,
        reconciler=reconciler,
        compensator=compensator,
        batch_size=settings.sweep_batch_size,
        lease_seconds=settings.transcode_lease_seconds,
        orphan_after=timedelta(minutes=settings.orphan_dispatch_minutes),
        processing_timeout=timedelta(minutes=settings.processing_timeout_minutes),
    )
    return GenerationServices(
        catalog=catalog,
        providers=providers,
        compensator=compensator,
        dispatcher=dispatcher,
        reconciler=reconciler,
        sweep=sweep,
    )


@lru_cache(maxsize=1)
def get_generation_services() -> GenerationServices:
    """Process-wide instance for the API and the workers."""
    from app.core.config import settings
    from app.db.session import get_session_factory

    return build_generation_services(settings, get_session_factory())
