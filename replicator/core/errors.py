"""
Replication error taxonomy.

Every fatal error aborts the whole run. Nothing is retried and partially
created destination state is left in place.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from botocore.exceptions import ClientError, WaiterError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset(
    {"NotFoundException", "ResourceNotFoundException", "NoSuchEntity"}
)


class ReplicationError(RuntimeError):
    """Base class for replication failures."""


class NotFoundError(ReplicationError):
    """Raised when a container, node, function or role does not resolve."""


class CredentialError(ReplicationError):
    """Raised when a cross-account role cannot be assumed."""


class RemoteOperationError(ReplicationError):
    """Raised when the remote service rejects a create/update call."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class UserAbort(Exception):
    """Raised when the operator declines to continue."""


def error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


@contextmanager
def remote_call(operation: str) -> Iterator[None]:
    """Translate botocore client errors raised inside the block."""
    try:
        yield
    except ClientError as exc:
        code = error_code(exc)
        if code in _NOT_FOUND_CODES:
            raise NotFoundError(f"{operation}: {exc}") from exc
        logger.error("%s rejected (%s)", operation, code or "unknown")
        raise RemoteOperationError(operation, exc) from exc
    except WaiterError as exc:
        logger.error("%s did not settle: %s", operation, exc.last_response)
        raise RemoteOperationError(operation, exc) from exc
