"""
Library catalog: which configured libraries claim a given path.

Location matching is component-wise, like a filesystem prefix check:
``/media/movies`` claims ``/media/movies/x.mkv`` but never
``/media/movies2/x.mkv``. Windows-style locations (``D:\\Media``) are
compared case-insensitively with either separator.
"""

import logging
import re
from pathlib import PurePosixPath, PureWindowsPath, PurePath
from typing import Iterable, Iterator, TYPE_CHECKING

from jellyfin.models import Library

if TYPE_CHECKING:
    from jellyfin.client import JellyfinClient

logger = logging.getLogger('JellyScan.catalog')

_WINDOWS_PATH_RE = re.compile(r'^([A-Za-z]:[\\/]|\\\\)')


def _as_pure_path(path: str) -> PurePath:
    if _WINDOWS_PATH_RE.match(path):
        return PureWindowsPath(path)
    return PurePosixPath(path)


def path_has_prefix(path: str, prefix: str) -> bool:
    """Return True if *prefix* is an ancestor of (or equal to) *path*.

    Both paths must be of the same flavour; a POSIX location never claims a
    Windows path and vice versa.
    """
    if not prefix:
        return False
    pure_path = _as_pure_path(path)
    pure_prefix = _as_pure_path(prefix)
    if type(pure_path) is not type(pure_prefix):
        return False
    # is_relative_to compares whole components (case-folded for Windows)
    return pure_path.is_relative_to(pure_prefix)


def match_libraries(libraries: Iterable[Library], path: str) -> list[Library]:
    """Return every library with a location containing *path*.

    Order follows *libraries*; a library with several matching locations
    appears once.
    """
    matched: list[Library] = []
    for library in libraries:
        if library in matched:
            continue
        if any(path_has_prefix(path, location) for location in library.locations):
            matched.append(library)
    return matched


class LibraryCatalog:
    """Snapshot of the server's libraries for a single reconciliation run."""

    def __init__(self, libraries: Iterable[Library]):
        self._libraries = list(libraries)

    @classmethod
    async def fetch(cls, client: "JellyfinClient") -> "LibraryCatalog":
        """Fetch the library list from the server.

        Raises:
            JellyfinError: if the library list cannot be fetched. Callers
                treat this as fatal; no classification is possible without it.
        """
        libraries = await client.get_libraries()
        logger.debug(
            "Library catalog: %s",
            ", ".join(f"{lib.name} ({len(lib.locations)} locations)" for lib in libraries) or "empty",
        )
        return cls(libraries)

    @property
    def libraries(self) -> list[Library]:
        return list(self._libraries)

    def match(self, path: str) -> list[Library]:
        return match_libraries(self._libraries, path)

    def __iter__(self) -> Iterator[Library]:
        return iter(self._libraries)

    def __len__(self) -> int:
        return len(self._libraries)
