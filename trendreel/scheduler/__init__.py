"""Auto-pilot scheduling for unattended channel runs."""

from trendreel.scheduler.scheduler import (
    AutoPilotScheduler,
    is_cooled_down,
    is_schedule_match,
)

__all__ = ["AutoPilotScheduler", "is_cooled_down", "is_schedule_match"]
