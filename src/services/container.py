"""
Service Container - Dependency Injection Container

Simple DI container for managing service instances and their dependencies.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    Infrastructure dependencies (db, reminder_scheduler) are injected.
    """

    # Infrastructure dependencies (injected)
    db: object  # Database instance
    reminder_scheduler: Optional[object] = None  # ReminderScheduler (trigger and health routes)

    # Services (lazy-loaded via properties)
    _checkin_service: Optional[object] = field(default=None, init=False, repr=False)
    _game_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def checkin_service(self):
        """Get CheckInService instance (lazy-loaded)"""
        if self._checkin_service is None:
            from src.services.checkin_service import CheckInService
            self._checkin_service = CheckInService(self.db)
            logger.debug("CheckInService instantiated")
        return self._checkin_service

    @property
    def game_service(self):
        """Get GameService instance (lazy-loaded)"""
        if self._game_service is None:
            from src.services.game_service import GameService
            self._game_service = GameService(self.db)
            logger.debug("GameService instantiated")
        return self._game_service


# Global container instance (initialized at startup)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(db: object, reminder_scheduler: Optional[object] = None) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        db: Database instance
        reminder_scheduler: ReminderScheduler driven by the trigger and health routes
    """
    global _container

    _container = ServiceContainer(db=db, reminder_scheduler=reminder_scheduler)

    logger.info("Service container initialized")
    return _container

