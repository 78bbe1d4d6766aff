"""Internal service clients."""

from circuitiq_core.clients.base import BaseServiceClient
from circuitiq_core.clients.account_client import AccountServiceClient

__all__ = ["BaseServiceClient", "AccountServiceClient"]
