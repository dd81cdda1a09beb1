"""
Prometheus metrics definitions for reading-quest.

Organized by category:
- Check-in processing
- Rewards: badges, levels, points, daily challenge
- Reminder scheduler

Metrics are exposed at the /metrics endpoint for Prometheus scraping.
"""

import logging
from prometheus_client import Counter

logger = logging.getLogger(__name__)

# =============================================================================
# Check-in Metrics
# =============================================================================

checkins_processed_total = Counter(
    "checkins_processed_total",
    "Check-in events processed by the stats aggregator",
    ["event"],  # created / deleted
)

# =============================================================================
# Reward Metrics
# =============================================================================

badges_awarded_total = Counter(
    "badges_awarded_total",
    "Badges awarded",
    ["condition"],
)

level_ups_total = Counter(
    "level_ups_total",
    "Level-up events",
)

points_granted_total = Counter(
    "points_granted_total",
    "Points granted through the ledger",
    ["related_type"],
)

challenge_claims_total = Counter(
    "challenge_claims_total",
    "Daily challenge claim attempts",
    ["outcome"],  # claimed / already_completed / insufficient_progress
)

# =============================================================================
# Scheduler Metrics
# =============================================================================

reminder_notifications_total = Counter(
    "reminder_notifications_total",
    "Reminder notifications created by scheduled scans",
    ["kind"],  # reading / parent
)

scheduler_task_runs_total = Counter(
    "scheduler_task_runs_total",
    "Gated scheduler task executions",
    ["task", "status"],  # status: success / error
)
