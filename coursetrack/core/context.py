"""Operation context tracked through contextvars.

Every HTTP request and every reconciliation sweep runs inside a context carrying
a request id, the acting identity (learner or administrator) and, for batch work,
the operation name. Log processors read these values so that a single sweep or
override can be followed across services without passing ids around.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
actor_id_var: ContextVar[str | None] = ContextVar("actor_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID, generating one when none is given."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_actor_id() -> str | None:
    """Get the identity performing the current operation."""
    return actor_id_var.get()


def set_actor_id(actor_id: str | UUID | None) -> None:
    """Set the identity performing the current operation."""
    actor_id_var.set(str(actor_id) if actor_id is not None else None)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_operation() -> str | None:
    return operation_var.get()


def get_context() -> dict[str, Any]:
    """Return the populated context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    actor_id = get_actor_id()
    if actor_id:
        context["actor_id"] = actor_id

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    operation = get_operation()
    if operation:
        context["operation"] = operation

    return context


def clear_context() -> None:
    """Reset all context variables (end of request)."""
    request_id_var.set("")
    actor_id_var.set(None)
    correlation_id_var.set(None)
    operation_var.set(None)


class OperationContext:
    """Context manager scoping a unit of work.

    Usage:
        with OperationContext(operation="reconcile_sweep", actor_id=admin_id):
            await reconciler.sweep()
    """

    def __init__(
        self,
        operation: str | None = None,
        actor_id: str | UUID | None = None,
        request_id: str | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self.operation = operation
        self.actor_id = actor_id
        self.request_id = request_id
        self.correlation_id = correlation_id
        self._tokens: list[tuple[ContextVar[Any], Token[Any]]] = []

    def __enter__(self) -> "OperationContext":
        request_id = self.request_id or generate_request_id()
        self._tokens.append((request_id_var, request_id_var.set(request_id)))
        if self.actor_id is not None:
            self._tokens.append((actor_id_var, actor_id_var.set(str(self.actor_id))))
        if self.correlation_id is not None:
            self._tokens.append(
                (correlation_id_var, correlation_id_var.set(self.correlation_id))
            )
        if self.operation is not None:
            self._tokens.append((operation_var, operation_var.set(self.operation)))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
