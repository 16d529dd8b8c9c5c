"""Typed registry of the transport functions the engine replays against.

A binding is any object exposing ``create(data)``, ``update(id, data)`` and
``delete(id)``; the read variants ``get``, ``get_all``, ``list`` and ``find``
are optional. Methods may be coroutine functions or plain callables.
Bindings are validated when registered, so a missing method fails at start-up
rather than in the middle of a replay cycle.
"""
from __future__ import annotations

import inspect
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Tuple, runtime_checkable

from models.pending_op import OperationType, PendingOperation
from services.errors import TransportBindingError


MUTATION_METHODS = tuple(op.value for op in OperationType)
READ_METHODS = ("get", "get_all", "list", "find")


@runtime_checkable
class EntityTransport(Protocol):
    async def create(self, data: Any) -> Any: ...

    async def update(self, record_id: Any, data: Any) -> Any: ...

    async def delete(self, record_id: Any) -> Any: ...


def validate_payload(operation_type: OperationType, payload: Any) -> None:
    if operation_type is OperationType.CREATE:
        return
    if not isinstance(payload, Mapping) or payload.get("id") is None:
        raise ValueError(f"{operation_type.value} payload must be a mapping with an 'id'")


def build_payload(operation_type: OperationType, args: Tuple[Any, ...], kwargs: Mapping[str, Any]) -> Any:
    """Describe a mutation call so that :func:`replay_arguments` can rebuild it."""

    params = list(args) + list(kwargs.values())
    if operation_type is OperationType.CREATE:
        if len(params) != 1:
            raise TypeError("create() takes exactly one record")
        return params[0]
    if operation_type is OperationType.UPDATE:
        if len(params) != 2:
            raise TypeError("update() takes a record id and the changed fields")
        record_id, data = params
        return {"id": record_id, "data": data}
    if len(params) != 1:
        raise TypeError("delete() takes exactly one record id")
    return {"id": params[0]}


def replay_arguments(operation_type: OperationType, payload: Any) -> Tuple[Any, ...]:
    validate_payload(operation_type, payload)
    if operation_type is OperationType.CREATE:
        return (payload,)
    if operation_type is OperationType.UPDATE:
        if set(payload) == {"id", "data"}:
            return (payload["id"], payload["data"])
        # Flat records from add_change() go through whole, id included.
        return (payload["id"], payload)
    return (payload["id"],)


class TransportRegistry:
    def __init__(self, bindings: Optional[Mapping[str, Any]] = None) -> None:
        self._bindings: Dict[str, Any] = {}
        for entity_type, transport in (bindings or {}).items():
            self.register(entity_type, transport)

    def register(self, entity_type: str, transport: Any) -> None:
        if not isinstance(entity_type, str) or not entity_type.strip():
            raise TransportBindingError(f"Invalid entity type: {entity_type!r}")
        missing = [name for name in MUTATION_METHODS if not callable(getattr(transport, name, None))]
        if missing:
            raise TransportBindingError(
                f"Transport for {entity_type!r} lacks {', '.join(missing)}"
            )
        self._bindings[entity_type] = transport

    def unregister(self, entity_type: str) -> None:
        self._bindings.pop(entity_type, None)

    def resolve(self, entity_type: str) -> Any:
        try:
            return self._bindings[entity_type]
        except KeyError:
            raise TransportBindingError(f"No transport bound for entity type {entity_type!r}") from None

    def supports_read(self, entity_type: str, method: str) -> bool:
        return method in READ_METHODS and callable(getattr(self.resolve(entity_type), method, None))

    @property
    def entity_types(self) -> Iterable[str]:
        return tuple(self._bindings)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    async def apply(self, operation: PendingOperation) -> Any:
        """Invoke the bound mutation for ``operation`` with its payload."""

        transport = self.resolve(operation.entity_type)
        method = getattr(transport, operation.operation_type.value)
        result = method(*replay_arguments(operation.operation_type, operation.payload))
        if inspect.isawaitable(result):
            result = await result
        return result


__all__ = [
    "EntityTransport",
    "MUTATION_METHODS",
    "READ_METHODS",
    "TransportRegistry",
    "build_payload",
    "replay_arguments",
    "validate_payload",
]
