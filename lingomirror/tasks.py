#!/usr/bin/env python3
"""Scheduled maintenance tasks.

- MirrorSyncTask: orphan cleanup followed by a sync of every alternative,
  every ``mirror_sync_interval_hours``
- MirrorPostScanTask: the same sync after a host library scan, when
  ``sync_mirrors_after_library_scan`` is on
- UserLanguageSyncTask: daily reconciliation of managed users' access at
  ``user_reconciliation_time``

Each task reports overall progress 0-100 and checks the cancellation token
between alternatives or users.

Example:
    >>> task = MirrorSyncTask(store, manager, orphans)
    >>> task.default_trigger()
    TaskTrigger(kind='interval', interval=datetime.timedelta(seconds=21600), time_of_day=None)
    >>> task.run(progress=print, cancel=threading.Event())
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import time, timedelta
from typing import Optional

from lingomirror.access.applier import LibraryAccessService
from lingomirror.access.users import UserLanguageService
from lingomirror.core.constants import Limits
from lingomirror.core.progress import CancelToken, ProgressCallback, check_cancelled, report_progress, scaled
from lingomirror.core.validators import ValidationError, validate_time_of_day
from lingomirror.infrastructure.log_entities import log_alternative, log_user
from lingomirror.infrastructure.logger import Logger, get_logger
from lingomirror.mirror.orphans import OrphanReconciler
from lingomirror.service import MirrorManager
from lingomirror.store.repository import ConfigurationStore


@dataclass(frozen=True)
class TaskTrigger:
    """When a task should run: every ``interval`` or daily at ``time_of_day``."""

    kind: str
    interval: Optional[timedelta] = None
    time_of_day: Optional[time] = None


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM``, falling back to the default reconciliation time."""
    try:
        validate_time_of_day(value)
    except ValidationError:
        value = Limits.DEFAULT_USER_RECONCILIATION_TIME
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


class ScheduledTask(ABC):
    """Base class for scheduled tasks."""

    name = ""
    key = ""
    description = ""

    def __init__(self, store: ConfigurationStore, logger: Optional[Logger] = None):
        self.store = store
        self.logger = logger or get_logger()

    @abstractmethod
    def default_trigger(self) -> Optional[TaskTrigger]:
        """Default schedule, or None for event-driven tasks."""

    @abstractmethod
    def run(self, progress: Optional[ProgressCallback] = None, cancel: CancelToken = None) -> None:
        """Execute the task.

        Raises:
            OperationCancelled: If the token fires
        """


class _AlternativeSyncMixin:
    """Syncs every alternative, spreading progress evenly across them."""

    def _sync_alternatives(
        self, manager: MirrorManager, progress: Optional[ProgressCallback], cancel: CancelToken, skip_empty: bool
    ) -> int:
        alternatives = self.store.get_alternatives()
        if not alternatives:
            self.logger.info("No language alternatives configured, nothing to sync")
            report_progress(progress, 100.0)
            return 0

        synced = 0
        share = 100.0 / len(alternatives)
        for index, alternative in enumerate(alternatives):
            check_cancelled(cancel)
            if skip_empty and not alternative.mirrors:
                continue
            self.logger.info("Syncing mirrors for alternative", alternative=log_alternative(alternative))
            try:
                manager.sync_alternative(alternative.id, scaled(progress, index * share, share), cancel)
                synced += 1
            except Exception as e:
                self.logger.exception(
                    "Failed to sync mirrors for alternative", e, alternative=log_alternative(alternative)
                )

        check_cancelled(cancel)
        report_progress(progress, 100.0)
        return synced


class MirrorSyncTask(_AlternativeSyncMixin, ScheduledTask):
    """Periodic orphan cleanup plus full mirror sync."""

    name = "LingoMirror Mirror Sync"
    key = "LingoMirrorSync"
    description = "Synchronizes all language mirror libraries with their source libraries."

    def __init__(
        self,
        store: ConfigurationStore,
        manager: MirrorManager,
        orphans: OrphanReconciler,
        logger: Optional[Logger] = None,
    ):
        super().__init__(store, logger)
        self.manager = manager
        self.orphans = orphans

    def default_trigger(self) -> TaskTrigger:
        hours = self.store.get_settings().mirror_sync_interval_hours
        return TaskTrigger("interval", interval=timedelta(hours=hours))

    def run(self, progress: Optional[ProgressCallback] = None, cancel: CancelToken = None) -> None:
        self.logger.info("Starting mirror sync task")

        try:
            cleanup = self.orphans.cleanup(cancel)
            if cleanup.total_cleaned:
                self.logger.info("Cleaned up orphaned mirrors before sync", count=cleanup.total_cleaned)
        except Exception as e:
            self.logger.warning("Failed to clean up orphaned mirrors, continuing with sync", error=str(e))

        self._sync_alternatives(self.manager, progress, cancel, skip_empty=False)
        self.logger.info("Mirror sync task completed")


class MirrorPostScanTask(_AlternativeSyncMixin, ScheduledTask):
    """Mirror sync triggered by a completed host library scan."""

    name = "LingoMirror Post-Scan Sync"
    key = "LingoMirrorPostScan"
    description = "Synchronizes mirrors after a library scan."

    def __init__(self, store: ConfigurationStore, manager: MirrorManager, logger: Optional[Logger] = None):
        super().__init__(store, logger)
        self.manager = manager

    def default_trigger(self) -> None:
        return None

    def run(self, progress: Optional[ProgressCallback] = None, cancel: CancelToken = None) -> None:
        if not self.store.get_settings().sync_mirrors_after_library_scan:
            self.logger.debug("Post-scan sync disabled")
            return
        self.logger.info("Library scan completed, syncing mirrors")
        self._sync_alternatives(self.manager, progress, cancel, skip_empty=True)
        self.logger.info("Post-scan mirror sync completed")


class UserLanguageSyncTask(ScheduledTask):
    """Daily reconciliation of managed users' library access."""

    name = "LingoMirror User Library Sync"
    key = "LingoMirrorUserSync"
    description = "Reconciles user library access with their language assignments."

    def __init__(
        self,
        store: ConfigurationStore,
        access: LibraryAccessService,
        languages: UserLanguageService,
        logger: Optional[Logger] = None,
    ):
        super().__init__(store, logger)
        self.access = access
        self.languages = languages

    def default_trigger(self) -> TaskTrigger:
        return TaskTrigger("daily", time_of_day=parse_time_of_day(self.store.get_settings().user_reconciliation_time))

    def run(self, progress: Optional[ProgressCallback] = None, cancel: CancelToken = None) -> None:
        self.logger.info("Starting user language sync task")
        report_progress(progress, 0.0)

        users = self.languages.get_all_users_with_languages()
        reconciled = 0
        for index, user in enumerate(users, start=1):
            check_cancelled(cancel)
            if user.is_plugin_managed:
                try:
                    if self.access.reconcile_user_access(user.id):
                        reconciled += 1
                        self.logger.info("Reconciled library access", user=log_user(user))
                except Exception as e:
                    self.logger.exception("Failed to reconcile user", e, user=log_user(user))
            report_progress(progress, index / len(users) * 100)

        self.logger.info("User language sync completed", users=len(users), reconciled=reconciled)
        report_progress(progress, 100.0)
