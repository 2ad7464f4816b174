"""Exceptions raised at the ingest boundary."""
from __future__ import annotations


class IngestError(Exception):
    """Base class for rejected ingest requests."""

    status_code = 400


class UnauthorizedIngest(IngestError):
    """The request did not carry the configured shared secret."""

    status_code = 401


class MalformedIngest(IngestError):
    """The request body could not be validated."""

    status_code = 400
