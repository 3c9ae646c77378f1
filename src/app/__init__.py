"""Application wiring around one AppState."""

from .runtime import GiftExchangeApp

__all__ = ["GiftExchangeApp"]
