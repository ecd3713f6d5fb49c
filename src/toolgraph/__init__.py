"""toolgraph: Dependency graph engine for planning tool installations."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
