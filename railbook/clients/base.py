"""
Shared plumbing for calls to collaborator services.

One httpx.AsyncClient per collaborator, created once at startup and closed at
shutdown, so connections are pooled across requests. Every call:

- has an explicit timeout; a timeout surfaces as CollaboratorTimeout, any other
  transport failure as CollaboratorUnreachable
- sends and parses explicit pydantic models
- turns the remote error envelope back into the typed error the remote raised.
  Anything we cannot interpret becomes a CollaboratorError with a generic
  message, so remote internals never reach our own callers
"""

import time
from typing import Optional, Type, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from railbook.core.exceptions import (
    CollaboratorError,
    CollaboratorTimeout,
    CollaboratorUnreachable,
    NotFound,
    RailbookError,
    error_for_kind,
)
from railbook.core.logging import REQUEST_ID_HEADER, get_logger
from railbook.core.metrics import collaborator_latency, record_collaborator_error
from railbook.schemas.errors import ErrorEnvelope

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ServiceClient:
    collaborator: str = "service"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float,
        internal_token: str,
        max_connections: int = 50,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(max_connections=max_connections),
            headers={"X-Internal-Token": internal_token},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(
        self,
        operation: str,
        method: str,
        path: str,
        body: Optional[BaseModel] = None,
        response_model: Optional[Type[ModelT]] = None,
        not_found_message: Optional[str] = None,
    ) -> Optional[ModelT]:
        # Carry the caller's request id so every hop of a saga logs under one id
        request_id = structlog.contextvars.get_contextvars().get("request_id")
        headers = {REQUEST_ID_HEADER: request_id} if request_id else None

        start = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                path,
                json=body.model_dump(mode="json") if body is not None else None,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            record_collaborator_error(self.collaborator, "timeout")
            logger.error("collaborator_timeout", collaborator=self.collaborator, operation=operation)
            raise CollaboratorTimeout(f"{self.collaborator} service did not respond in time") from e
        except httpx.TransportError as e:
            record_collaborator_error(self.collaborator, "unreachable")
            logger.error(
                "collaborator_unreachable",
                collaborator=self.collaborator,
                operation=operation,
                error=str(e),
            )
            raise CollaboratorUnreachable(f"{self.collaborator} service is unreachable") from e
        finally:
            collaborator_latency.labels(
                collaborator=self.collaborator, operation=operation
            ).observe(time.perf_counter() - start)

        if response.is_error:
            error = self._error_from_response(response, not_found_message)
            record_collaborator_error(self.collaborator, "remote")
            logger.warning(
                "collaborator_rejected",
                collaborator=self.collaborator,
                operation=operation,
                status_code=response.status_code,
                kind=error.kind.value,
            )
            raise error

        if response_model is None:
            return None
        try:
            return response_model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(
                "collaborator_bad_response",
                collaborator=self.collaborator,
                operation=operation,
                error=str(e),
            )
            raise CollaboratorError(f"{self.collaborator} service returned an invalid response") from e

    def _error_from_response(self, response: httpx.Response, not_found_message: Optional[str]) -> RailbookError:
        try:
            envelope = ErrorEnvelope.model_validate(response.json())
        except (ValueError, ValidationError):
            envelope = None

        if envelope is not None:
            error = error_for_kind(envelope.error.kind.value, envelope.error.message)
        elif response.status_code == 404:
            error = NotFound()
        else:
            error = CollaboratorError(f"{self.collaborator} service failed")

        if not_found_message and type(error) is NotFound:
            error = NotFound(not_found_message)
        return error
