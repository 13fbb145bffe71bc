"""
Dependency Injection Container for TrendReel.

Builds the external capabilities from settings and wires them into the
pipeline orchestrator. Everything is created lazily on first access and
cached, so a missing API key only surfaces when the capability is used.

Usage:
    container = DependencyContainer()
    await container.initialize()

    result = await container.orchestrator.run(channel)

    await container.shutdown()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import structlog
from pydantic import SecretStr

from trendreel.config.settings import Settings, get_settings
from trendreel.core.exceptions import InitializationError

if TYPE_CHECKING:
    from trendreel.capabilities.base import (
        ChannelStore,
        Publisher,
        StructuredGenerator,
        TrendSource,
        VideoRenderer,
    )
    from trendreel.pipeline.orchestrator import PipelineOrchestrator

logger = structlog.get_logger(__name__)


def _secret(value: Optional[SecretStr]) -> Optional[str]:
    return value.get_secret_value() if value is not None else None


class DependencyContainer:
    """
    Central container for capabilities and the orchestrator.

    Example:
        container = DependencyContainer()
        await container.initialize()

        orchestrator = container.orchestrator
        store = container.channel_store

        await container.shutdown()
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the container.

        Args:
            settings: Application settings. Defaults to get_settings().
        """
        self._settings = settings or get_settings()
        self._generator: StructuredGenerator | None = None
        self._renderer: VideoRenderer | None = None
        self._publisher: Publisher | None = None
        self._trend_source: TrendSource | None = None
        self._trend_source_built = False
        self._channel_store: ChannelStore | None = None
        self._orchestrator: PipelineOrchestrator | None = None
        self._initialized = False

        logger.info("dependency_container_created")

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def generator(self) -> "StructuredGenerator":
        """Structured generator for the configured provider."""
        if self._generator is None:
            from trendreel.capabilities.generators import (
                AnthropicStructuredGenerator,
                GeminiStructuredGenerator,
            )

            if self._settings.generation_provider == "gemini":
                self._generator = GeminiStructuredGenerator(
                    api_key=_secret(self._settings.gemini_api_key),
                    model=self._settings.gemini_text_model,
                    temperature=self._settings.generation_temperature,
                )
            else:
                self._generator = AnthropicStructuredGenerator(
                    api_key=_secret(self._settings.anthropic_api_key),
                    model=self._settings.anthropic_model,
                    max_tokens=self._settings.generation_max_tokens,
                    temperature=self._settings.generation_temperature,
                )
            logger.info("generator_created", provider=self._settings.generation_provider)
        return self._generator

    @property
    def renderer(self) -> "VideoRenderer":
        if self._renderer is None:
            from trendreel.capabilities.veo_renderer import VeoVideoRenderer

            self._renderer = VeoVideoRenderer(
                api_key=_secret(self._settings.gemini_api_key),
                model=self._settings.veo_model,
            )
            logger.info("renderer_created", model=self._settings.veo_model)
        return self._renderer

    @property
    def publisher(self) -> "Publisher":
        if self._publisher is None:
            from trendreel.capabilities.youtube_publisher import SimulatedPublisher, YouTubePublisher

            if self._settings.publish_mode == "youtube":
                self._publisher = YouTubePublisher(
                    client_id=self._settings.youtube_client_id,
                    client_secret=_secret(self._settings.youtube_client_secret),
                    category_id=self._settings.youtube_category_id,
                )
            else:
                self._publisher = SimulatedPublisher()
            logger.info("publisher_created", mode=self._settings.publish_mode)
        return self._publisher

    @property
    def trend_source(self) -> Optional["TrendSource"]:
        """Live YouTube trend source, or None when no API key is configured."""
        if not self._trend_source_built:
            api_key = _secret(self._settings.youtube_api_key)
            if api_key:
                from trendreel.capabilities.youtube_trends import YouTubeTrendSource

                self._trend_source = YouTubeTrendSource(
                    api_key=api_key,
                    max_results=self._settings.trend_max_results,
                    default_region=self._settings.default_region_code,
                )
                logger.info("trend_source_created")
            else:
                logger.info("trend_source_unconfigured")
            self._trend_source_built = True
        return self._trend_source

    @property
    def channel_store(self) -> "ChannelStore":
        """
        Channel store: Supabase when configured, in-memory otherwise.

        Raises:
            InitializationError: If the Supabase client cannot be created.
        """
        if self._channel_store is None:
            from trendreel.capabilities.channel_store import InMemoryChannelStore, SupabaseChannelStore

            if self._settings.has_supabase:
                try:
                    from supabase import create_client

                    client = create_client(
                        self._settings.supabase_url,
                        _secret(self._settings.supabase_key),
                    )
                except Exception as e:
                    logger.error("supabase_client_creation_failed", error=str(e))
                    raise InitializationError(
                        "SupabaseChannelStore",
                        f"Failed to create Supabase client: {e}",
                        {"url": self._settings.supabase_url},
                    )
                self._channel_store = SupabaseChannelStore(client, table=self._settings.channels_table)
                logger.info("channel_store_created", backend="supabase")
            else:
                self._channel_store = InMemoryChannelStore()
                logger.info("channel_store_created", backend="memory")
        return self._channel_store

    @property
    def orchestrator(self) -> "PipelineOrchestrator":
        if self._orchestrator is None:
            from trendreel.pipeline.orchestrator import PipelineOrchestrator

            self._orchestrator = PipelineOrchestrator(
                generator=self.generator,
                renderer=self.renderer,
                publisher=self.publisher,
                trend_source=self.trend_source,
                settings=self._settings,
            )
        return self._orchestrator

    async def initialize(self) -> None:
        """
        Build the orchestrator and the channel store.

        Raises:
            InitializationError: If any component fails to build.
        """
        if self._initialized:
            logger.warning("container_already_initialized")
            return

        logger.info("container_initializing")
        try:
            _ = self.channel_store
            _ = self.orchestrator
        except InitializationError:
            raise
        except Exception as e:
            logger.error(
                "container_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise InitializationError(
                "DependencyContainer",
                f"Failed to initialize dependencies: {e}",
            )

        self._initialized = True
        logger.info("container_initialized")

    async def shutdown(self) -> None:
        logger.info("container_shutting_down")

        if self._trend_source is not None:
            try:
                await self._trend_source.close()
                logger.info("trend_source_closed")
            except Exception as e:
                logger.error("trend_source_close_error", error=str(e))

        self._initialized = False
        logger.info("container_shutdown_complete")

    @property
    def is_initialized(self) -> bool:
        return self._initialized


_container: DependencyContainer | None = None


def get_container() -> DependencyContainer:
    """Get the global container instance, creating it if needed."""
    global _container
    if _container is None:
        _container = DependencyContainer()
    return _container


async def initialize_container() -> DependencyContainer:
    container = get_container()
    await container.initialize()
    return container


async def shutdown_container() -> None:
    global _container
    if _container is not None:
        await _container.shutdown()
        _container = None
