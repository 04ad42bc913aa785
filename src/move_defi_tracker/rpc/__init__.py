"""Ledger client, retry logic, and view call batching."""

from move_defi_tracker.rpc.batch import ViewCallBatcher
from move_defi_tracker.rpc.client import (
    AccountNotFoundError,
    LedgerAPIError,
    LedgerNetworkError,
    MovementClient,
)
from move_defi_tracker.rpc.retry import RetryConfig, with_retry

__all__ = [
    "AccountNotFoundError",
    "LedgerAPIError",
    "LedgerNetworkError",
    "MovementClient",
    "RetryConfig",
    "ViewCallBatcher",
    "with_retry",
]
