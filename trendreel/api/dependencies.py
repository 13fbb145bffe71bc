"""FastAPI dependency injection providers.

Route handlers receive the orchestrator, channel store and scheduler through
these functions; tests replace them with ``app.dependency_overrides``.
"""

from typing import Optional

from trendreel.capabilities.base import ChannelStore
from trendreel.core.container import get_container
from trendreel.pipeline.orchestrator import PipelineOrchestrator
from trendreel.scheduler.scheduler import AutoPilotScheduler

_scheduler_instance: Optional[AutoPilotScheduler] = None


def get_orchestrator() -> PipelineOrchestrator:
    return get_container().orchestrator


def get_channel_store() -> ChannelStore:
    return get_container().channel_store


def get_scheduler() -> AutoPilotScheduler:
    """
    Get the auto-pilot scheduler.

    Created on first use when startup did not set one, so manual and cron
    triggered runs work even with the interval job disabled.
    """
    global _scheduler_instance

    if _scheduler_instance is None:
        container = get_container()
        _scheduler_instance = AutoPilotScheduler(
            container.channel_store,
            container.orchestrator,
            container.settings,
        )

    return _scheduler_instance


def set_scheduler(scheduler: AutoPilotScheduler) -> None:
    global _scheduler_instance
    _scheduler_instance = scheduler


def reset_dependencies() -> None:
    """Reset global dependency instances. Used on shutdown and in tests."""
    global _scheduler_instance
    _scheduler_instance = None
