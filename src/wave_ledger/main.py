"""Wave Ledger main entry point."""

from __future__ import annotations

import argparse
import os
import sys

import uvicorn

from wave_ledger.service.logging import configure_logging


def main() -> int:
    """Main entry point for the Wave Ledger service."""
    parser = argparse.ArgumentParser(
        prog="wave-ledger",
        description="Wave Ledger - durable append-only log of wave events",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("WAVE_LEDGER_PORT", "4950")),
        help="Port to listen on (default: 4950)",
    )
    parser.add_argument(
        "--storage",
        choices=["memory", "jsonl", "sqlite"],
        default=None,
        help="Storage backend (default: $WAVE_LEDGER_STORAGE or jsonl)",
    )
    parser.add_argument(
        "--data-path",
        default=None,
        help="Journal or database path (default depends on backend)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Force JSON log output (default: auto-detect)",
    )

    args = parser.parse_args()

    configure_logging(
        level=args.log_level.upper(),
        json_output=args.json_logs if args.json_logs else None,
        storage_backend=args.storage or os.getenv("WAVE_LEDGER_STORAGE"),
    )

    # The app factory reads its configuration from the environment
    if args.storage:
        os.environ["WAVE_LEDGER_STORAGE"] = args.storage
    if args.data_path:
        os.environ["WAVE_LEDGER_DATA_PATH"] = args.data_path
    os.environ["WAVE_LEDGER_PORT"] = str(args.port)

    try:
        uvicorn.run(
            "wave_ledger.service.app:create_app_from_env",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=args.log_level,
            factory=True,
        )
        return 0
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
