"""
Service Layer Package

Business logic between the HTTP layer and the query layer.

Core Services:
- CheckInService: Check-in ledger and the reward pipeline it triggers
- GameService: Leaderboards, reports, dashboard, recommendations
- notification_service: Achievement/reminder notifications and user inbox
"""

from src.services.container import ServiceContainer, get_container, init_container

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
]
