"""Error taxonomy translated into HTTP responses by ``taskflow.main``."""

from typing import Any


class TaskFlowError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequestError(TaskFlowError):
    """Missing or blank required field, malformed identifier."""

    status_code = 400


class NotFoundError(TaskFlowError):
    status_code = 404


class StoreError(TaskFlowError):
    """Driver-level or connectivity failure while talking to the database."""

    status_code = 500


class StartupError(TaskFlowError):
    """Configuration or connectivity problem that prevents serving."""
