"""unitsolver: Unit-version constraint resolution with cost-based optimization."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
