r"""
argbind structures: declarative targets for argument binding.

Overview
- Field: descriptor declaring one bindable value slot with its metadata
  (kind, help, token, short token, metavar, default, choices, optional,
  positional, subcommand, nargs).
- Nested: descriptor embedding another Structure; its fields are flattened into
  the owning parser, depth-first, in declaration order.
- Structure: base class of every target. Its metaclass collects the descriptors
  into an explicit, ordered field table (__fields__) when the class is created,
  so schema derivation never needs runtime type inspection.

Quick example:
    >>> from argbind import Structure, Field, Kind, Many
    >>> class Options(Structure):
    ...     NAME = Field(Kind.STRING, help="who to greet")
    ...     verbose = Field(Kind.BOOL, short="v", default="false")
    ...     tags = Field(Many(Kind.STRING), nargs="*")
    ...
    >>> Options().tags
    []

Metadata (sanitized on construction)
- help / token / short / metavar / default: Unset | str, non-empty when provided.
  • short must not carry the '-' marker.
  • default is text; "|" separates candidates and "$NAME" reads the environment
    (resolved by the schema builder).
- choices: Iterable[str] without duplicates (normalized to a tuple), or a
  "a|b|c" string.
- optional / positional: Unset | bool, forcing the classification otherwise derived
  from the identifier's casing.
- subcommand: bool; subcommand fields must be of kind STRING.
- nargs: Unset | str | int, validated by the schema builder.
"""
import functools
import operator
import re
from collections.abc import Iterable

from .kinds import Kind, Many, zero
from .utils import *


class FieldType(type):
    """
    Metaclass giving field descriptors a stable, introspectable shape.

    Responsibilities
    - __typename__ derived from the class name (camel-case split with hyphens).
    - Read-only properties for every name listed in __introspectable__ (via mirror()).
    - Compact __repr__ and structured __rich_repr__ for diagnostics.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_string(cls, metadata, name, /):
    if not isinstance(object := metadata[name], str | Unset):
        raise TypeError(f"{cls.__typename__} {name!r} must be a string")
    elif isinstance(object, str) and not (object := object.strip()):
        raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
    metadata[name] = object


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate field metadata in place.

    Raises
    - TypeError: wrong metadata types (kind, strings, flags, choices, nargs).
    - ValueError: empty strings, a marked short token, duplicated choices.
    """
    if not isinstance(kind := metadata["kind"], Kind | Many):
        raise TypeError(f"{cls.__typename__} 'kind' must be a Kind or Many")

    for name in ("help", "token", "short", "metavar", "default"):
        _sanitize_string(cls, metadata, name)

    if isinstance(short := metadata["short"], str) and short.startswith("-"):
        raise ValueError(f"{cls.__typename__} 'short' must be given without the '-' marker")

    # A bare string is a "|"-separated choice list; empty segments are dropped.
    if isinstance(choices := metadata["choices"], str):
        choices = [choice for choice in choices.split("|") if choice]
    if not isinstance(choices, Iterable):
        raise TypeError(f"{cls.__typename__} 'choices' must be iterable")
    sanitized = []
    for choice in choices:
        if not isinstance(choice, str):
            raise TypeError(f"{cls.__typename__} 'choices' must be an iterable of strings")
        if choice in sanitized:
            raise ValueError(f"{cls.__typename__} 'choices' cannot contain duplicates")
        sanitized.append(choice)
    metadata["choices"] = tuple(sanitized)

    for name in ("optional", "positional"):
        if not isinstance(metadata[name], bool | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a boolean")

    if not isinstance(metadata["subcommand"], bool):
        raise TypeError(f"{cls.__typename__} 'subcommand' must be a boolean")
    if metadata["subcommand"] and kind is not Kind.STRING:
        raise TypeError(f"{cls.__typename__} subcommand must be of kind STRING")

    if not isinstance(nargs := metadata["nargs"], str | int | Unset) or isinstance(nargs, bool):
        raise TypeError(f"{cls.__typename__} 'nargs' must be a string or an integer")


class Field(metaclass=FieldType):
    """
    Descriptor declaring one bindable value of a Structure.

    The descriptor stores its value in the instance __dict__ under the field
    name; the schema builder binds a Slot to that storage. The identifier
    (attribute name) is captured by __set_name__ and drives token derivation
    and the positional-vs-option convention.
    """

    __introspectable__ = (
        "name",
        "kind",
        "help",
        "token",
        "short",
        "metavar",
        "default",
        "choices",
        "optional",
        "positional",
        "subcommand",
        "nargs",
    )

    def __init__(
            self,
            kind,
            /,
            help=Unset,
            token=Unset,
            short=Unset,
            metavar=Unset,
            default=Unset,
            choices=(),
            *,
            optional=Unset,
            positional=Unset,
            subcommand=False,
            nargs=Unset
    ):
        metadata = {
            "kind": kind,
            "help": help,
            "token": token,
            "short": short,
            "metavar": metavar,
            "default": default,
            "choices": choices,
            "optional": optional,
            "positional": positional,
            "subcommand": subcommand,
            "nargs": nargs,
        }
        _sanitize_metadata(type(self), metadata)

        self._name = Unset
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    @property
    def metadata(self):
        """
        Raw metadata with Unset preserved (the schema builder needs to tell
        “not given” apart from explicit values).
        """
        return {name: getattr(self, "_" + name) for name in type(self).__introspectable__}

    def __set_name__(self, owner, name):
        if self._name is not Unset and self._name != name:
            raise TypeError(f"{type(self).__typename__} cannot be shared between attributes")
        self._name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        try:
            return instance.__dict__[self._name]
        except KeyError:
            raise AttributeError(f"{type(instance).__name__!r} object has no value for {self._name!r}") from None

    def __set__(self, instance, value):
        instance.__dict__[self._name] = value


class Nested(metaclass=FieldType):
    """
    Descriptor embedding another Structure, flattened by the schema builder.
    """

    __introspectable__ = (
        "name",
        "structure",
    )

    def __init__(self, structure, /):
        if not isinstance(structure, type) or not issubclass(structure, Structure):
            raise TypeError(f"{type(self).__typename__} 'structure' must be a Structure subclass")
        self._name = Unset
        self._structure = structure

    def __set_name__(self, owner, name):
        if self._name is not Unset and self._name != name:
            raise TypeError(f"{type(self).__typename__} cannot be shared between attributes")
        self._name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        try:
            return instance.__dict__[self._name]
        except KeyError:
            raise AttributeError(f"{type(instance).__name__!r} object has no value for {self._name!r}") from None

    def __set__(self, instance, value):
        if not isinstance(value, self._structure):
            raise TypeError(f"{self._name!r} must be a {self._structure.__name__} instance")
        instance.__dict__[self._name] = value


class StructureType(type):
    """
    Metaclass collecting Field/Nested descriptors into __fields__.

    Order
    - Fields inherited from bases come first (base order), then the ones declared
      in the class body in declaration order. Redeclaring a name replaces the
      inherited descriptor in place.
    """

    def __new__(cls, name, bases, namespace, **options):
        fields = {}
        for base in bases:
            for field in getattr(base, "__fields__", ()):
                fields[field.name] = field
        for attribute, object in namespace.items():
            if isinstance(object, Field | Nested):
                fields[attribute] = object
            elif attribute in fields:
                del fields[attribute]

        self = super().__new__(cls, name, bases, namespace)
        self.__fields__ = tuple(fields.values())
        return self


class Structure(metaclass=StructureType):
    """
    Base class of binding targets.

    Instances start with every Field at the zero value of its kind and every
    Nested field holding a fresh instance of its structure.
    """

    def __init__(self):
        for field in type(self).__fields__:
            match field:
                case Nested():
                    setattr(self, field.name, field.structure())
                case Field():
                    setattr(self, field.name, zero(field.kind))

    def __repr__(self):
        return f"{type(self).__name__}({
            ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
        })"

    def __rich_repr__(self):
        for field in type(self).__fields__:
            yield field.name, getattr(self, field.name)


__all__ = (
    "Field",
    "Nested",
    "Structure",
)

# Keep the metaclasses out of star-imports and documentation.
del FieldType, StructureType
