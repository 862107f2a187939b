"""Custom exceptions for the pedagogy engine."""

from __future__ import annotations

from typing import Optional


class PedagogyError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StageNotFoundError(PedagogyError):
    """Raised when a stage number doesn't exist in the curriculum."""

    def __init__(self, stage_id: int, total_stages: Optional[int] = None):
        self.stage_id = stage_id
        self.total_stages = total_stages
        message = f"Stage not found: {stage_id}"
        if total_stages is not None:
            message += f" (curriculum has {total_stages} stages)"
        super().__init__(message, {"stage_id": stage_id, "total_stages": total_stages})


class InvalidCellIndexError(PedagogyError):
    """Raised when a cell index is out of range for the current stage."""

    def __init__(self, cell_index: int, cell_count: int):
        self.cell_index = cell_index
        self.cell_count = cell_count
        super().__init__(
            f"Invalid cell index: {cell_index}. Stage has {cell_count} cell(s)",
            {"cell_index": cell_index, "cell_count": cell_count},
        )


class CurriculumError(PedagogyError):
    """Raised when there's an issue with curriculum loading."""

    def __init__(self, message: str, file_path: Optional[str] = None, cause: Optional[Exception] = None):
        self.file_path = file_path
        self.cause = cause
        details = {"file_path": file_path}
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)


class AssistanceError(PedagogyError):
    """Raised when the assistance generator fails or is misconfigured."""

    def __init__(self, message: str, provider: Optional[str] = None, cause: Optional[Exception] = None):
        self.provider = provider
        self.cause = cause
        details = {"provider": provider}
        if cause:
            details["cause"] = str(cause)
        super().__init__(message, details)


class ConfigurationError(PedagogyError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        super().__init__(message, {"config_key": config_key})
