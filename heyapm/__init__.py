"""Synthetic APM load generator and benchmark harness.

Load-generation mode runs any number of concurrent instances against an APM
server; benchmark mode runs a single fixed pass and compares its throughput
with historical results.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
