"""Access to the runtime conflict policy held in the settings store."""

from __future__ import annotations

import logging
from typing import Protocol

from app.core.exceptions import PolicyStoreUnavailable
from app.domain.models import ConflictPolicy, SystemSettings

logger = logging.getLogger(__name__)

SAFE_DEFAULT_POLICY = ConflictPolicy(
    auto_conflict_detection=True, allow_overlapping_classes=False
)


class SettingsStore(Protocol):
    def get(self) -> SystemSettings: ...


class PolicyProvider:
    """Reads the conflict policy fresh from the settings store on every call.

    If the store cannot be read the safe defaults are returned instead, so a
    broken settings backend never disables conflict detection.
    """

    def __init__(self, store: SettingsStore) -> None:
        self.store = store

    def current(self) -> ConflictPolicy:
        try:
            settings = self._load()
        except PolicyStoreUnavailable:
            logger.warning(
                "Settings store unavailable, using default conflict policy",
                exc_info=True,
            )
            return SAFE_DEFAULT_POLICY
        return settings.scheduling.policy()

    def _load(self) -> SystemSettings:
        try:
            return self.store.get()
        except Exception as exc:
            raise PolicyStoreUnavailable(str(exc)) from exc
