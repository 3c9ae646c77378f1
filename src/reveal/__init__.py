"""Reveal orchestrator: check, fetch handle, prove, verify on-chain."""

from .orchestrator import RevealOrchestrator

__all__ = ["RevealOrchestrator"]
