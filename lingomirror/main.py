#!/usr/bin/env python3
"""Main entry point for LingoMirror commands.

This module handles:
- Component initialization (store, host, engine, access, services, tasks)
- Signal handling: SIGINT/SIGTERM cancel the running operation
- Command dispatch and output
- Cleanup on exit

Example:
    >>> from lingomirror.main import run_lingomirror
    >>> run_lingomirror(args, config, logger)
"""

import argparse
import signal
import sys
import threading
from typing import Callable, Dict, Optional, Tuple

from lingomirror.access.applier import LibraryAccessService
from lingomirror.access.users import UserLanguageService
from lingomirror.core.constants import ConfigKey, SetBy
from lingomirror.core.errors import LingoMirrorError, NotFoundError, OperationCancelled
from lingomirror.events import EventHandlers
from lingomirror.host.interfaces import HostUser, VirtualFolder
from lingomirror.host.local import LocalHost
from lingomirror.infrastructure.config_manager import ConfigManager, ConfigSource
from lingomirror.infrastructure.logger import Logger
from lingomirror.mirror.engine import MirrorEngine
from lingomirror.mirror.locks import LockRegistry
from lingomirror.mirror.orphans import OrphanReconciler
from lingomirror.mirror.results import SyncAllStatus
from lingomirror.service import MirrorManager
from lingomirror.store.models import Alternative
from lingomirror.store.persistence import YamlDocumentStore
from lingomirror.store.repository import ConfigurationStore
from lingomirror.tasks import MirrorSyncTask, UserLanguageSyncTask

DEFAULT_ALTERNATIVE = "default"


class LingoMirrorMain:
    """
    Main class for LingoMirror command execution.

    Wires components, runs one command and shuts down cleanly.
    """

    def __init__(self, args: argparse.Namespace, config: ConfigManager, logger: Logger):
        """
        Initialize the controller.

        Args:
            args: Parsed command-line arguments
            config: Assembled configuration hierarchy
            logger: Logger instance
        """
        self.args = args
        self.config = config
        self.logger = logger
        self.cancel = threading.Event()

        self.store: Optional[ConfigurationStore] = None
        self.host: Optional[LocalHost] = None
        self.engine: Optional[MirrorEngine] = None
        self.access: Optional[LibraryAccessService] = None
        self.languages: Optional[UserLanguageService] = None
        self.manager: Optional[MirrorManager] = None
        self.orphans: Optional[OrphanReconciler] = None
        self.events: Optional[EventHandlers] = None

    def initialize_components(self) -> None:
        """
        Initialize all LingoMirror components.

        Raises:
            PersistenceError: If the host inventory cannot be read
        """
        self.logger.debug("Initializing components")

        store_path = self.config.get(ConfigKey.STORE_PATH)
        host_path = self.config.get(ConfigKey.HOST_PATH)
        self.logger.debug("Using configuration", store=store_path, host=host_path)

        self.store = ConfigurationStore(YamlDocumentStore(store_path), self.logger)
        self.host = LocalHost(host_path, self.logger)

        self.engine = MirrorEngine(
            self.store,
            self.host,
            self.logger,
            locks=LockRegistry(),
            probe_hardlinks=bool(self.config.get(ConfigKey.PROBE_HARDLINKS, False)),
        )
        self.access = LibraryAccessService(self.store, self.host, self.host, logger=self.logger)
        self.languages = UserLanguageService(self.store, self.host, self.access, self.logger)
        self.manager = MirrorManager(
            self.store, self.host, self.host, engine=self.engine, access=self.access, logger=self.logger
        )
        self.orphans = OrphanReconciler(
            self.store,
            self.engine,
            self.host,
            self.logger,
            ghost_threshold_minutes=self._ghost_threshold_override(),
        )
        self.events = EventHandlers(self.store, self.languages, self.access, self.orphans, self.logger)

        self.logger.debug("All components initialized")

    def _ghost_threshold_override(self) -> Optional[float]:
        """Configured ghost threshold, unless it is only the compiled default."""
        configured = self.config.get_with_source(ConfigKey.GHOST_THRESHOLD)
        if configured is None or configured.source == ConfigSource.COMPILED_DEFAULTS:
            return None
        return configured.value

    def setup_signal_handlers(self) -> None:
        """
        Setup signal handlers for graceful cancellation.

        SIGTERM and SIGINT set the cancellation event; bulk operations stop
        between files and mirrors.
        """

        def signal_handler(signum, frame):
            sig_name = signal.Signals(signum).name
            self.logger.info(f"Received signal {sig_name}, cancelling...")
            self.cancel.set()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        self.logger.debug("Signal handlers registered")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _alternative(self, ref: str) -> Alternative:
        alternative = self.store.get_alternative(ref) or self.store.find_alternative_by_name(ref)
        if alternative is None:
            raise NotFoundError(f"Language alternative not found: {ref}")
        return alternative

    def _library(self, ref: str) -> VirtualFolder:
        folder = self.host.get_virtual_folder(ref) or self.host.get_virtual_folder_by_name(ref)
        if folder is None:
            raise NotFoundError(f"Library not found: {ref}")
        return folder

    def _user(self, ref: str) -> HostUser:
        user = self.host.get_user(ref)
        if user is None:
            folded = ref.casefold()
            user = next((u for u in self.host.get_users() if u.username.casefold() == folded), None)
        if user is None:
            raise NotFoundError(f"User not found: {ref}")
        return user

    def _progress(self, label: str) -> Callable[[float], None]:
        def report(value: float) -> None:
            self.logger.debug(f"{label} progress", percent=f"{value:.0f}")

        return report

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def cmd_alternatives_list(self) -> int:
        for alternative in self.store.get_alternatives():
            print(
                f"{alternative.id}  {alternative.name}  {alternative.language_code}  "
                f"{alternative.destination_base_path}"
            )
            for mirror in alternative.mirrors:
                print(
                    f"    {mirror.id}  {mirror.source_library_name} -> {mirror.target_library_name}  "
                    f"[{mirror.status.name.lower()}]  {mirror.last_sync_file_count} files"
                    + (f"  error: {mirror.last_error}" if mirror.last_error else "")
                )
        return 0

    def cmd_alternatives_add(self) -> int:
        alternative = self.manager.create_alternative(
            self.args.name,
            self.args.language_code,
            self.args.base_path,
            self.args.metadata_language,
            self.args.metadata_country,
        )
        print(alternative.id)
        return 0

    def cmd_alternatives_remove(self) -> int:
        alternative = self._alternative(self.args.alternative)
        deleted = self.manager.delete_alternative(
            alternative.id, self.args.delete_libraries, self.args.delete_files
        )
        print(f"Deleted {alternative.name} and {len(deleted)} mirrors")
        return 0

    def cmd_mirrors_add(self) -> int:
        alternative = self._alternative(self.args.alternative)
        library = self._library(self.args.library)
        mirror = self.manager.add_library_mirror(
            alternative.id, library.id, self.args.target_path, self.args.library_name, self.cancel
        )
        print(f"{mirror.id}  {mirror.target_library_name}  {mirror.target_path}  {mirror.last_sync_file_count} files")
        return 0

    def cmd_mirrors_sync(self) -> int:
        result = self.engine.sync_mirror(self.args.mirror, self._progress("Mirror sync"), self.cancel)
        print(f"added={result.added} removed={result.removed} failed={result.failed} total={result.total_files}")
        return 1 if result.failed else 0

    def cmd_mirrors_remove(self) -> int:
        alternative = self._alternative(self.args.alternative)
        library = self._library(self.args.library)
        result = self.manager.delete_library_mirror(
            alternative.id, library.id, self.args.delete_library, self.args.delete_files, self.args.force
        )
        if result.has_errors:
            print(f"Removed with errors: {result.error_summary}", file=sys.stderr)
        return 0

    def cmd_sync(self) -> int:
        if self.args.alternative:
            alternative = self._alternative(self.args.alternative)
            result = self.manager.sync_alternative(alternative.id, self._progress("Sync"), self.cancel)
            print(f"{result.status.value}: {result.mirrors_synced}/{result.total_mirrors} synced")
            if result.status == SyncAllStatus.CANCELLED:
                return 130
            return 0 if result.status == SyncAllStatus.COMPLETED else 1

        MirrorSyncTask(self.store, self.manager, self.orphans, self.logger).run(
            self._progress("Sync"), self.cancel
        )
        return 0

    def cmd_cleanup(self) -> int:
        result = self.events.on_library_removed(self.cancel)
        for entry in result.cleaned_up_mirrors:
            print(f"cleaned  {entry}")
        for entry in result.failed_cleanups:
            print(f"failed   {entry}")
        return 1 if result.failed_cleanups else 0

    def cmd_libraries_list(self) -> int:
        for library in self.engine.get_libraries():
            role = f"mirror of {library.alternative_id}" if library.is_mirror else "source"
            print(f"{library.id}  {library.name}  [{role}]  {', '.join(library.paths)}")
        return 0

    def cmd_libraries_add(self) -> int:
        folder = self.host.add_library(self.args.name, self.args.paths, self.args.collection_type)
        print(folder.id)
        return 0

    def cmd_libraries_remove(self) -> int:
        folder = self._library(self.args.library)
        self.host.remove_virtual_folder(folder.name)
        result = self.events.on_library_removed(self.cancel)
        print(f"Removed {folder.name}, cleaned {result.total_cleaned} mirrors")
        return 0

    def cmd_users_list(self) -> int:
        for info in self.languages.get_all_users_with_languages():
            language = info.assigned_alternative_name or DEFAULT_ALTERNATIVE
            managed = "managed" if info.is_plugin_managed else "unmanaged"
            print(f"{info.id}  {info.username}  {language}  [{managed}]")
        return 0

    def cmd_users_add(self) -> int:
        user = self.host.add_user(self.args.username, is_administrator=self.args.admin)
        self.events.on_user_created(user.id)
        print(user.id)
        return 0

    def cmd_users_remove(self) -> int:
        user = self._user(self.args.user)
        self.host.remove_user(user.id)
        self.events.on_user_deleted(user.id)
        return 0

    def cmd_users_assign(self) -> int:
        user = self._user(self.args.user)
        alternative_id = None
        if self.args.alternative.casefold() != DEFAULT_ALTERNATIVE:
            alternative_id = self._alternative(self.args.alternative).id
        self.languages.assign_language(
            user.id,
            alternative_id,
            SetBy.MANUAL,
            manually_set=self.args.manual,
            is_plugin_managed=not self.args.unmanaged,
        )
        return 0

    def cmd_users_clear(self) -> int:
        user = self._user(self.args.user)
        return 0 if self.languages.clear_language(user.id) else 1

    def cmd_users_reconcile(self) -> int:
        UserLanguageSyncTask(self.store, self.access, self.languages, self.logger).run(
            self._progress("Reconcile"), self.cancel
        )
        return 0

    def cmd_users_enable_all(self) -> int:
        print(f"Enabled {self.access.enable_all_users(self.cancel)} users")
        return 0

    def cmd_users_disable(self) -> int:
        user = self._user(self.args.user)
        self.access.disable_user(user.id, self.args.restore_full_access)
        return 0

    def cmd_validate(self) -> int:
        library = self._library(self.args.library)
        is_valid, error = self.engine.validate_mirror_configuration(library.id, self.args.target_path)
        print("valid" if is_valid else f"invalid: {error}")
        return 0 if is_valid else 1

    def _commands(self) -> Dict[Tuple[str, Optional[str]], Callable[[], int]]:
        return {
            ("alternatives", "list"): self.cmd_alternatives_list,
            ("alternatives", "add"): self.cmd_alternatives_add,
            ("alternatives", "remove"): self.cmd_alternatives_remove,
            ("mirrors", "add"): self.cmd_mirrors_add,
            ("mirrors", "sync"): self.cmd_mirrors_sync,
            ("mirrors", "remove"): self.cmd_mirrors_remove,
            ("libraries", "list"): self.cmd_libraries_list,
            ("libraries", "add"): self.cmd_libraries_add,
            ("libraries", "remove"): self.cmd_libraries_remove,
            ("users", "list"): self.cmd_users_list,
            ("users", "add"): self.cmd_users_add,
            ("users", "remove"): self.cmd_users_remove,
            ("users", "assign"): self.cmd_users_assign,
            ("users", "clear"): self.cmd_users_clear,
            ("users", "reconcile"): self.cmd_users_reconcile,
            ("users", "enable-all"): self.cmd_users_enable_all,
            ("users", "disable"): self.cmd_users_disable,
            ("sync", None): self.cmd_sync,
            ("cleanup", None): self.cmd_cleanup,
            ("validate", None): self.cmd_validate,
        }

    def execute(self) -> int:
        """Dispatch the parsed command."""
        key = (self.args.command, getattr(self.args, "action", None))
        handler = self._commands().get(key)
        if handler is None:
            self.logger.error("Unknown command", command=" ".join(k for k in key if k))
            return 1
        return handler()

    def cleanup(self) -> None:
        """Release resources on shutdown."""
        self.logger.debug("Cleanup complete")

    def run(self) -> int:
        """
        Run one command.

        Returns:
            Exit code (0 for success, 130 when cancelled, 1 otherwise)
        """
        try:
            self.initialize_components()

            self.setup_signal_handlers()

            return self.execute()

        except OperationCancelled as e:
            self.logger.warning(e.message)
            return 130

        except KeyboardInterrupt:
            self.logger.info("Interrupted by user")
            return 130

        except LingoMirrorError as e:
            self.logger.error(e.message, error_code=e.error_code.name)
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

        finally:
            self.cleanup()


def run_lingomirror(args: argparse.Namespace, config: ConfigManager, logger: Logger) -> int:
    """
    Main entry point for running a LingoMirror command.

    Args:
        args: Parsed command-line arguments
        config: Configuration hierarchy
        logger: Logger instance

    Returns:
        Exit code
    """
    main = LingoMirrorMain(args, config, logger)

    return main.run()


def main():
    """
    Entry point when run as standalone script.
    """
    from lingomirror.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
