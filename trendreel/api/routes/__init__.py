"""API route modules."""

from trendreel.api.routes.channels import router as channels_router
from trendreel.api.routes.cron import router as cron_router
from trendreel.api.routes.health import router as health_router
from trendreel.api.routes.pipeline import router as pipeline_router

__all__ = [
    "channels_router",
    "cron_router",
    "health_router",
    "pipeline_router",
]
