"""
Team Collaboration Setup Engine
Scheduled Jobs.

Jobs:
    - setup_confirmation_sweep: forces confirmation of subjects left open
      after the setup deadline (interval: SETUP_SWEEP_INTERVAL_SECONDS)
"""

from __future__ import annotations

from typing import Any

from collab.services.scheduler_service import register_job
from collab.services.setup_sweeper import SetupSweeper


# ═══════════════════════════════════════════════════════════════════════════
#  Job: Setup Confirmation Sweep
# ═══════════════════════════════════════════════════════════════════════════

@register_job("setup_confirmation_sweep", interval_seconds=60,
              interval_config_key="SETUP_SWEEP_INTERVAL_SECONDS")
def sweep_expired_setups(app) -> dict[str, Any]:
    """Confirm tools, rules and meeting of setups past their deadline."""
    report = SetupSweeper(clock=app.extensions.get("clock")).run_tick()
    return report.to_dict()
