"""Session controller: wallet connectivity and confidential-capability initialization."""

from .controller import SessionController

__all__ = ["SessionController"]
