"""Status notifier: the single transient, auto-dismissing status."""

from .status import StatusNotifier

__all__ = ["StatusNotifier"]
