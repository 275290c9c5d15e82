"""
argbind utilities shared by the structures, schema, arguments and parsers layers.

- Unset: falsey "not provided" sentinel, distinct from None, 0 and "".
  It joins PEP 604 unions, so isinstance(value, str | Unset) reads naturally.
- coalesce(value, default): materialize Unset, keep every other value (None included).
- rename(name): decorator pinning __name__/__qualname__ on generated callables.
- mirror(name): read-only property over self._<name>, handing out container copies.

    >>> coalesce(Unset, 8080)
    8080
    >>> coalesce(None, 8080) is None
    True
"""
import builtins
import functools
from collections.abc import Sequence, Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Type of the Unset sentinel (one instance per process, sealed).
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    Return object, or default when object is Unset.
    """
    return default if object is Unset else object


def rename(name, /):
    """
    Decorator giving the decorated callable a stable __name__ and __qualname__.
    """
    if not isinstance(name, str):
        raise TypeError("@rename() argument must be a string")

    def decorator(callable):
        if not builtins.callable(callable):
            raise TypeError("@rename() must be applied to a callable")
        callable.__name__ = callable.__qualname__ = name
        return callable

    return decorator


def _detach(object):
    # Containers are rebuilt recursively; Unset reads as None.
    match object:
        case str():
            return object
        case tuple():
            return tuple(map(_detach, object))
        case Sequence():
            return list(map(_detach, object))
        case Mapping():
            return {key: _detach(value) for key, value in object.items()}
        case Set():
            return set(map(_detach, object))
        case _:
            return coalesce(object)


def mirror(name, /):
    """
    Read-only property exposing self._<name>.

    Lists, mappings and sets are returned as fresh copies, tuples keep their
    shape, and an Unset backing value reads as None.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _detach(getattr(self, "_" + name))

    return property(getter)


__all__ = (
    "UnsetType",
    "Unset",
    "coalesce",
    "rename",
    "mirror",
)
