from __future__ import annotations


class BuildError(Exception):
    """Raised when a build stage cannot continue safely."""
