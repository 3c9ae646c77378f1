"""Submission orchestrator: encrypt, create, confirm, resync."""

from .orchestrator import MillisecondSequence, RecordIdGenerator, SubmissionOrchestrator

__all__ = ["MillisecondSequence", "RecordIdGenerator", "SubmissionOrchestrator"]
