"""Batch delivery of e-books from the to-send folder."""

from kindle_sender.delivery.exceptions import DeliveryFailedError, OrchestrationError
from kindle_sender.delivery.files import FileService
from kindle_sender.delivery.orchestrator import (
    BatchOutcome,
    DeliveryOrchestrator,
    FileResult,
    FileStatus,
)

__all__ = [
    "DeliveryOrchestrator",
    "BatchOutcome",
    "FileResult",
    "FileStatus",
    "FileService",
    "OrchestrationError",
    "DeliveryFailedError",
]
