"""
Error envelope shared by every service in the repo.
"""

from pydantic import BaseModel

from railbook.core.exceptions import ErrorKind


class ErrorBody(BaseModel):
    kind: ErrorKind
    message: str


class ErrorEnvelope(BaseModel):
    error: ErrorBody
