"""Domain models and the average-cost-basis engine.

This package holds the in-memory ledger types, the event timeline, the
trade-derived price oracle and the per-asset cost pools. Nothing here touches
files or the console so that the accounting can be tested in isolation.
"""

__all__ = [
    "engine",
    "errors",
    "ledger",
    "pools",
    "pricing",
    "timeline",
]
