"""Shared pytest fixtures for LingoMirror tests."""
import logging
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from lingomirror.access.applier import LibraryAccessService
from lingomirror.access.users import UserLanguageService
from lingomirror.events import EventHandlers
from lingomirror.host.interfaces import VirtualFolder
from lingomirror.host.local import LocalHost
from lingomirror.infrastructure.logger import Logger, set_global_logger
from lingomirror.mirror.engine import MirrorEngine
from lingomirror.mirror.orphans import OrphanReconciler
from lingomirror.service import MirrorManager
from lingomirror.store.models import Alternative
from lingomirror.store.persistence import MemoryDocumentStore
from lingomirror.store.repository import ConfigurationStore


@pytest.fixture(autouse=True)
def quiet_logger() -> Logger:
    """Install a global logger that discards output."""
    logger = Logger(name="lingomirror-test", level="DEBUG", handlers=[logging.NullHandler()])
    set_global_logger(logger)
    return logger


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Create a movie library with media, artwork and metadata files."""
    source = temp_dir / "movies"
    source.mkdir()

    film = source / "Film (2020)"
    film.mkdir()
    (film / "film.mkv").write_text("video")
    (film / "film.srt").write_text("subtitles")
    (film / "poster.jpg").write_text("artwork")
    (film / "film.nfo").write_text("<movie/>")

    (film / "extrafanart").mkdir()
    (film / "extrafanart" / "fanart1.jpg").write_text("fanart")

    (film / ".trickplay").mkdir()
    (film / ".trickplay" / "0.jpg").write_text("tile")

    other = source / "Other (2021)"
    other.mkdir()
    (other / "other.mp4").write_text("more video")

    return source


@pytest.fixture
def mirror_base(temp_dir: Path) -> Path:
    """Destination base directory for an alternative."""
    base = temp_dir / "pt"
    base.mkdir()
    return base


@pytest.fixture
def backend() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def store(backend: MemoryDocumentStore, quiet_logger: Logger) -> ConfigurationStore:
    return ConfigurationStore(backend, quiet_logger)


@pytest.fixture
def host(quiet_logger: Logger) -> LocalHost:
    """In-memory host inventory."""
    return LocalHost(logger=quiet_logger)


@pytest.fixture
def library(host: LocalHost, source_dir: Path) -> VirtualFolder:
    """The Movies source library registered on the host."""
    return host.add_library("Movies", [str(source_dir)], "movies")


@pytest.fixture
def engine(store: ConfigurationStore, host: LocalHost, quiet_logger: Logger) -> MirrorEngine:
    return MirrorEngine(store, host, quiet_logger)


@pytest.fixture
def access(store: ConfigurationStore, host: LocalHost, quiet_logger: Logger) -> LibraryAccessService:
    return LibraryAccessService(store, host, host, logger=quiet_logger)


@pytest.fixture
def languages(
    store: ConfigurationStore, host: LocalHost, access: LibraryAccessService, quiet_logger: Logger
) -> UserLanguageService:
    return UserLanguageService(store, host, access, quiet_logger)


@pytest.fixture
def manager(
    store: ConfigurationStore,
    host: LocalHost,
    engine: MirrorEngine,
    access: LibraryAccessService,
    quiet_logger: Logger,
) -> MirrorManager:
    return MirrorManager(store, host, host, engine=engine, access=access, logger=quiet_logger)


@pytest.fixture
def orphans(
    store: ConfigurationStore, engine: MirrorEngine, host: LocalHost, quiet_logger: Logger
) -> OrphanReconciler:
    return OrphanReconciler(store, engine, host, quiet_logger)


@pytest.fixture
def events(
    store: ConfigurationStore,
    languages: UserLanguageService,
    access: LibraryAccessService,
    orphans: OrphanReconciler,
    quiet_logger: Logger,
) -> EventHandlers:
    return EventHandlers(store, languages, access, orphans, quiet_logger)


@pytest.fixture
def portuguese(manager: MirrorManager, mirror_base: Path) -> Alternative:
    """A Portuguese alternative with no mirrors yet."""
    return manager.create_alternative("Portuguese", "pt-BR", str(mirror_base))


@pytest.fixture
def make_alternative():
    """Factory for unsaved alternatives."""

    def factory(name: str = "Portuguese", base: str = "/media/pt", code: str = "pt-BR") -> Alternative:
        language, _, country = code.partition("-")
        return Alternative(
            name=name,
            language_code=code,
            metadata_language=language,
            metadata_country=country,
            destination_base_path=base,
        )

    return factory
