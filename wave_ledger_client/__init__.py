"""Wave Ledger Client SDK.

Provides async and sync interfaces for sending waves, reading the
history and following new waves as they are appended.

Example:
    >>> from wave_ledger_client import WaveClient
    >>> async with WaveClient("http://localhost:4950") as client:
    ...     await client.send_wave("0xA11CE", "Hello, Linea!")
    ...     async for wave in client.watch_waves():
    ...         print(wave.sender, wave.message)
"""

from .client import (
    NewWave,
    Wave,
    WaveClient,
    WaveClientConfig,
    WaveClientError,
    WaveClientSync,
    WaveConnectionError,
    WaveNotFoundError,
    WaveRejectedError,
)

__all__ = [
    "NewWave",
    "Wave",
    "WaveClient",
    "WaveClientConfig",
    "WaveClientError",
    "WaveClientSync",
    "WaveConnectionError",
    "WaveNotFoundError",
    "WaveRejectedError",
]
__version__ = "0.1.0"
