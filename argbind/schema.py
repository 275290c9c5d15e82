"""
argbind schema builder: derive argument specs from a Structure.

Operations
- derive_token(identifier, token=Unset): canonical long token of a field.
- resolve_default(text, environ): pick the effective default text from "|"
  candidates, expanding "$NAME" from the environment mapping.
- parse_nargs(nargs): (minimum, maximum) value counts, -1 meaning unbounded.
- build(target, environ=os.environ): yield one Argument per Field of the
  target, nested structures flattened depth-first in declaration order.

Classification
- an identifier written entirely in upper case is positional, anything else
  is an option; positional= and optional= metadata override the convention.
- subcommand fields are always positional and required.

Every declaration mistake surfaces as a SchemaError subclass.
"""
import os
import re

from .arguments import Argument, Scalar, Multi, Subcommands
from .faults import *
from .kinds import Many, Slot, parse
from .structures import Field, Nested
from .utils import *

_COUNT = re.compile(r"[0-9]+")


def derive_token(identifier, token=Unset, /):
    """
    Derive the canonical long token of a field.

    The explicit token wins over the identifier; either way the name goes
    through the same camel-case splitting:
    - a name entirely in upper case is returned unchanged (NAME -> NAME);
    - an upper-case letter gets a "-" in front of it when something was already
      written and the previous character is neither upper case nor "-", then
      it is lowercased (AuthURL -> auth-url);
    - "_" becomes "-" (dry_run -> dry-run).
    """
    name = coalesce(token, identifier)
    if not isinstance(name, str):
        raise TypeError("derive_token() argument must be a string")
    if name.upper() == name:
        return name

    buffer = []
    for index, character in enumerate(name):
        if "A" <= character <= "Z":
            if buffer and not "A" <= name[index - 1] <= "Z" and name[index - 1] != "-":
                buffer.append("-")
            buffer.append(character.lower())
        elif character == "_":
            buffer.append("-")
        else:
            buffer.append(character)
    return "".join(buffer)


def resolve_default(text, environ=os.environ, /):
    """
    Resolve the effective default text, or Unset when there is none.

    The text is split on "|"; a candidate starting with "$" is replaced with the
    environment value named by the rest of it (missing variables resolve to "").
    The first non-empty candidate wins.
    """
    if text is Unset:
        return Unset
    for candidate in text.split("|"):
        if candidate.startswith("$"):
            candidate = environ.get(candidate.lstrip("$"), "")
        if candidate:
            return candidate
    return Unset


def parse_nargs(nargs, /):
    """
    Translate a nargs declaration into (minimum, maximum).

    - "*" -> (0, -1), "+" -> (1, -1), "?" -> (0, 1)
    - a non-negative integer n (or its decimal text) -> (n, n)

    Raises
    - MalformedNargsError: anything else.
    """
    match nargs:
        case "*":
            return 0, -1
        case "+":
            return 1, -1
        case "?":
            return 0, 1
        case bool():
            pass
        case int() if nargs >= 0:
            return nargs, nargs
        case str() if _COUNT.fullmatch(nargs):
            return int(nargs), int(nargs)
    raise MalformedNargsError(
        "unknown nargs pattern %r" % (nargs,),
        nargs=nargs,
        hint="use '*', '+', '?' or a non-negative integer",
    )


def _flatten(structure):
    for field in type(structure).__fields__:
        match field:
            case Nested():
                yield from _flatten(getattr(structure, field.name))
            case Field():
                yield structure, field


def _variant(field):
    metadata = field.metadata
    if metadata["subcommand"]:
        return Subcommands()
    match field.kind:
        case Many(_, size):
            return Multi(*parse_nargs(coalesce(metadata["nargs"], "*" if size is None else size)))
        case _:
            if metadata["nargs"] is not Unset:
                raise MalformedNargsError(
                    "nargs %r declared on the scalar field %r" % (metadata["nargs"], field.name),
                    nargs=metadata["nargs"],
                    hint="declare the field with a Many() kind to accept several values",
                )
            return Scalar()


def _argument(owner, field, environ):
    metadata = field.metadata
    token = derive_token(field.name, metadata["token"])

    positional = coalesce(metadata["positional"], field.name.upper() == field.name)
    optional = coalesce(metadata["optional"], not positional)
    if metadata["subcommand"]:
        positional, optional = True, False

    default = Unset
    if (text := resolve_default(metadata["default"], environ)) is not Unset:
        try:
            default = parse(text, field.kind)
        except CoercionError as fault:
            raise MalformedDefaultError(
                "default of %r cannot be used: %s" % (token, fault.message),
                token=token,
                text=text,
                kind=field.kind,
                hint=fault.options.get("hint"),
            ) from fault

    return Argument(
        Slot(owner, field.name, field.kind),
        _variant(field),
        token=token,
        short=metadata["short"],
        metavar=metadata["metavar"],
        help=metadata["help"],
        choices=metadata["choices"],
        optional=optional,
        positional=positional,
        default=default,
    )


def build(target, /, environ=os.environ):
    """
    Derive the argument specs of a target structure.

    Yields Argument instances bound to the target's storage, in field order
    (nested structures flattened depth-first). Registration, and with it the
    positional ordering and duplicate-token checks, is left to the parser.

    Raises
    - DefaultOnRequiredError: a required positional declares a default.
    - MalformedNargsError: unknown nargs pattern, or nargs on a scalar field.
    - MalformedDefaultError: the resolved default does not parse with the field kind.
    """
    for owner, field in _flatten(target):
        yield _argument(owner, field, environ)


__all__ = (
    "derive_token",
    "resolve_default",
    "parse_nargs",
    "build",
)
