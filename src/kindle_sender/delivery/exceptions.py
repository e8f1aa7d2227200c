"""Delivery run exceptions."""

from __future__ import annotations


class OrchestrationError(Exception):
    """The delivery run could not complete."""


class DeliveryFailedError(OrchestrationError):
    """The run finished but at least one file was not delivered."""

    def __init__(self, failed: int, succeeded: int = 0):
        self.failed = failed
        self.succeeded = succeeded
        super().__init__(f"Failed to process {failed} files")
