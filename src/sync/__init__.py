"""Record synchronizer: rebuilds the read model from the ledger."""

from .synchronizer import RecordSynchronizer

__all__ = ["RecordSynchronizer"]
