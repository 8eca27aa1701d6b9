# app/domain/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base for errors reported to the caller with a structured body."""
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code


# ── Input validation (400, never retried) ──────────────────────────
class MissingFileError(PipelineError):
    status_code = 400


class UnsupportedFileTypeError(PipelineError):
    status_code = 400


class EmptyUploadError(PipelineError):
    status_code = 400


class MappingError(PipelineError):
    status_code = 400


class RowValidationError(PipelineError):
    status_code = 400


# ── Parsing ────────────────────────────────────────────────────────
class TabularParseError(PipelineError):
    status_code = 400


class ArchiveExtractionError(PipelineError):
    status_code = 400


# ── External dependencies ──────────────────────────────────────────
class ContentHostError(PipelineError):
    status_code = 502


class ClassificationError(Exception):
    """Classification call failed or returned an unusable payload."""
