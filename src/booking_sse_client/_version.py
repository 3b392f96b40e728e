"""Version of the booking-sse-client distribution.

Hatch reads ``__version__`` from here through ``[tool.hatch.version]``.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
