"""
Wave Ledger - durable append-only log of wave events.

Records who waved, what they said and when, keeps the total count in
lockstep with the history, and notifies subscribers on every new wave.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
