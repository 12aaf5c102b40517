"""Wave Ledger service - HTTP surfaces over the ledger."""

from .app import create_app_from_env, create_ledger_app

__all__ = ["create_ledger_app", "create_app_from_env"]
