"""
shared_lib.path_mapper — Regex path rewriting for server-side paths.

Translates a file path as seen by the machine that produced the change
event into the path as the media server knows it (different mount points,
container volumes, drive letters).

Rule field semantics
--------------------
from_pattern
    A Python ``re`` regex matched against the local path.  Capturing groups
    provide the portion of the path that is carried over.

    Example: ``^/mnt/nas/(.*)``

to_pattern
    A ``re.sub`` *replacement template* that builds the server path from the
    groups captured by ``from_pattern``.  Use ``\\1``, ``\\2``, … as
    back-references.

    Example: ``/media/\\1``

Usage
-----
::

    from shared_lib.path_mapper import PathRewriter, PathRule

    rules = [
        PathRule(
            name="nas",
            from_pattern=r"^/mnt/nas/(.*)",
            to_pattern=r"/media/\\1",
        )
    ]
    rewriter = PathRewriter(rules)
    rewriter.rewrite("/mnt/nas/movies/x.mkv")
    # -> "/media/movies/x.mkv"

Config via environment variable::

    import os
    rewriter = PathRewriter.from_env(os.environ.get("JELLYSCAN_PATH_RULES", "[]"))

JSON format: capture group references must use ``\\\\1``, ``\\\\2`` etc.
(double-escaped in JSON so the Python string contains a single backslash)::

    JELLYSCAN_PATH_RULES='[{"name":"nas","from_pattern":"^/mnt/nas/(.*)","to_pattern":"/media/\\\\1"}]'
"""
from __future__ import annotations

import json
import logging
import re
from typing import Optional

from pydantic import BaseModel

log = logging.getLogger("JellyScan.path_mapper")


class PathRule(BaseModel):
    """A single named one-way path rewrite rule."""

    name: str
    from_pattern: str   # Regex (with capturing groups) that matches local paths
    to_pattern: str     # ``re.sub`` replacement template for the server path
    case_insensitive: bool = False


class PathRewriter:
    """
    Applies an ordered list of :class:`PathRule` objects to rewrite local
    event paths into server paths.

    Rules are evaluated in array order, **first match wins**.  A path no
    rule matches is returned unchanged.  Back-slash paths are normalised to
    forward slashes before matching.
    """

    def __init__(self, rules: list[PathRule]) -> None:
        self._rules = rules
        self._compiled: list[re.Pattern[str]] = [
            re.compile(r.from_pattern, re.IGNORECASE if r.case_insensitive else 0)
            for r in rules
        ]

    @property
    def rules(self) -> list[PathRule]:
        return list(self._rules)

    def _normalize(self, path: str) -> str:
        """Replace backslashes with forward slashes."""
        return path.replace("\\", "/")

    def match_rule(self, path: str) -> Optional[PathRule]:
        """Return the first rule matching *path*, or ``None``."""
        normalized = self._normalize(path)
        for rule, compiled in zip(self._rules, self._compiled):
            if compiled.match(normalized):
                return rule
        return None

    def rewrite(self, path: str) -> str:
        """
        Rewrite a local path into the server's view of it.

        Returns *path* unchanged if no rule matches.
        """
        normalized = self._normalize(path)
        for rule, compiled in zip(self._rules, self._compiled):
            if compiled.match(normalized):
                result = compiled.sub(rule.to_pattern, normalized, count=1)
                log.debug(
                    "path_mapper: rewrite via rule %r: %r → %r",
                    rule.name, normalized, result,
                )
                return result
        log.debug("path_mapper: no rule matched %r, using it as-is", path)
        return path

    def __call__(self, path: str) -> str:
        return self.rewrite(path)

    @classmethod
    def from_env(cls, env_value: str) -> "PathRewriter":
        """
        Parse a JSON rule list into a :class:`PathRewriter`.

        The JSON value must be an array of rule objects.  Each object must
        have ``name``, ``from_pattern``, and ``to_pattern`` keys.
        ``case_insensitive`` is optional (defaults to ``False``).

        Raises:
            json.JSONDecodeError: If *env_value* is not valid JSON.
            pydantic.ValidationError: If any rule dict is missing required
                fields or has invalid values.
        """
        raw: list[dict] = json.loads(env_value)
        return cls.from_dicts(raw)

    @classmethod
    def from_dicts(cls, raw: list[dict]) -> "PathRewriter":
        """Build a rewriter from already-decoded rule dicts (e.g. YAML config)."""
        return cls([PathRule(**r) for r in raw])
