"""
Application state for the gift-exchange orchestration core.

`AppState` is the one owned object that the session controller, record
synchronizer, orchestrators and status notifier all receive by reference.
Every field is replaced wholesale on write so readers never observe a
half-updated read model or status.
"""

from .models import AppState, Outcome, ReadModel, Record

__all__ = ["AppState", "Outcome", "ReadModel", "Record"]
