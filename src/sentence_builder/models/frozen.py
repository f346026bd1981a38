"""Read-only mapping fields for frozen snapshot models.

``frozen=True`` only blocks attribute assignment; a plain ``dict`` field can
still be edited in place by anyone holding the snapshot. ``FrozenDict`` stores
a ``MappingProxyType`` (nested mappings and lists included) and dumps back to
plain dicts.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Annotated, Any, TypeVar

from pydantic import AfterValidator, SerializerFunctionWrapHandler, WrapSerializer

K = TypeVar("K")
V = TypeVar("V")


def freeze(value: Any) -> Any:
    """Recursively wrap mappings in read-only proxies and lists in tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Turn frozen mappings back into plain dicts for serialization."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return tuple(thaw(v) for v in value)
    return value


def _serialize(value: Mapping, handler: SerializerFunctionWrapHandler) -> Any:
    return handler(thaw(value))


FrozenDict = Annotated[Mapping[K, V], AfterValidator(freeze), WrapSerializer(_serialize)]
