"""Failures that abort an ingestion request, with their HTTP status."""

from __future__ import annotations


class IngestError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(IngestError):
    status_code = 401


class InvalidInput(IngestError):
    status_code = 400


class NotFound(IngestError):
    status_code = 404


class StorageFailure(IngestError):
    status_code = 500
