"""
Configuration provider boundary.

Fetching and caching remote configuration happens elsewhere; this module only
holds the latest known quarantine durations and lets consumers observe them.
"""

import threading
from collections.abc import Callable

import structlog

from quarantine.domain.models import QuarantineConfiguration

logger = structlog.get_logger(__name__)

ConfigurationListener = Callable[[QuarantineConfiguration], None]


class ConfigurationProvider:
    """Observable holder of the current quarantine configuration."""

    def __init__(self, initial: QuarantineConfiguration | None = None) -> None:
        self._lock = threading.RLock()
        self._current = initial or QuarantineConfiguration()
        self._listeners: list[ConfigurationListener] = []
        self.logger = logger.bind(component="configuration_provider")

    @property
    def current(self) -> QuarantineConfiguration:
        with self._lock:
            return self._current

    def publish(self, configuration: QuarantineConfiguration) -> None:
        """Replace the current configuration and notify observers."""
        with self._lock:
            if configuration == self._current:
                return
            self._current = configuration
            self.logger.info("configuration_updated", **configuration.model_dump())
            for listener in list(self._listeners):
                listener(configuration)

    def observe(self, listener: ConfigurationListener) -> Callable[[], None]:
        """Deliver the current configuration immediately, then every change."""
        with self._lock:
            self._listeners.append(listener)
            listener(self._current)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe
