"""
TrendReel FastAPI Application.

- main: FastAPI application entry point and configuration
- routes/: endpoint definitions by domain
- models: request/response models
- dependencies: dependency injection providers

API Structure:
- /health - health and liveness probes
- /metrics - Prometheus metrics
- /api/v1/pipeline/run - ad-hoc pipeline run
- /api/v1/channels - channel records and stored-channel runs
- /api/v1/cron/tick - external auto-pilot trigger
"""

from trendreel.api.main import app

__all__ = ["app"]
