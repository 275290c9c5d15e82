"""
argbind kinds: the typed value-coercion layer.

Overview
- Kind: closed enumeration of the supported scalar kinds
  (bool; signed and unsigned integers of 8/16/32/64 bits plus the native
  64-bit INT/UINT; 32- and 64-bit floats; text).
- Many: homogeneous sequence counterpart of a scalar kind, growable by default
  or fixed-size when declared with a size.
- Slot: reference into a target structure's value storage (target + attribute + kind).

Operations
- parse(text, kind): strict textual-to-typed conversion.
- assign(slot, text): parse and store into a scalar slot.
- append(slot, text): parse against the element kind and append to a sequence slot.
- zero(kind): the initial value a slot of this kind holds before parsing.

Lexical rules
- bool: 1 t T TRUE true True / 0 f F FALSE false False.
- signed integers: base-10 only, optional sign; unsigned integers reject any sign.
- floats: decimal float forms (with exponent), inf/infinity/nan in any case;
  surrounding whitespace and digit separators are rejected.
- every numeric value is range-checked against the target width: an 8-bit slot
  never wraps around, "300" into UINT8 is an OutOfRangeError.

Every failure is a CoercionError naming the offending text and the target kind.
"""
import math
import re
import struct
from enum import Enum
from typing import final

from .faults import MalformedValueError, OutOfRangeError, UnsupportedKindError


class Kind(Enum):
    """
    closed set of scalar kinds understood by the coercion engine.
    """
    BOOL    = "bool"
    INT     = "int"
    INT8    = "int8"
    INT16   = "int16"
    INT32   = "int32"
    INT64   = "int64"
    UINT    = "uint"
    UINT8   = "uint8"
    UINT16  = "uint16"
    UINT32  = "uint32"
    UINT64  = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING  = "string"

    def __str__(self):
        return self.value


@final
class Many:
    """
    Homogeneous sequence of a scalar kind.

    - element: Kind of every item.
    - size: None for a growable sequence, or a non-negative int for a fixed-size one
      (the schema derives the value count from it when no nargs is declared).
    """
    __slots__ = ("_element", "_size")
    __match_args__ = ("element", "size")

    def __init__(self, element, /, size=None):
        if not isinstance(element, Kind):
            raise TypeError("Many() element must be a scalar kind")
        if size is not None and (not isinstance(size, int) or isinstance(size, bool)):
            raise TypeError("Many() 'size' must be an integer")
        if size is not None and size < 0:
            raise ValueError("Many() 'size' must be a non-negative integer")
        self._element = element
        self._size = size

    @property
    def element(self):
        return self._element

    @property
    def size(self):
        return self._size

    def __eq__(self, other):
        if not isinstance(other, Many):
            return NotImplemented
        return (self._element, self._size) == (other._element, other._size)

    def __hash__(self):
        return hash((Many, self._element, self._size))

    def __repr__(self):
        if self._size is None:
            return "Many(%s)" % self._element.name
        return "Many(%s, size=%d)" % (self._element.name, self._size)

    def __str__(self):
        return "list[%s]" % self._element


_BOOLEANS = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}

# Inclusive bounds per integer width; INT/UINT are the native 64-bit widths.
_BOUNDS = {
    Kind.INT:    (-2 ** 63, 2 ** 63 - 1),
    Kind.INT8:   (-2 ** 7, 2 ** 7 - 1),
    Kind.INT16:  (-2 ** 15, 2 ** 15 - 1),
    Kind.INT32:  (-2 ** 31, 2 ** 31 - 1),
    Kind.INT64:  (-2 ** 63, 2 ** 63 - 1),
    Kind.UINT:   (0, 2 ** 64 - 1),
    Kind.UINT8:  (0, 2 ** 8 - 1),
    Kind.UINT16: (0, 2 ** 16 - 1),
    Kind.UINT32: (0, 2 ** 32 - 1),
    Kind.UINT64: (0, 2 ** 64 - 1),
}

_SIGNED = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"[0-9]+")
_FLOAT = re.compile(r"[+-]?(?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)", re.IGNORECASE)

# Digits of the widest bound (2 ** 64 - 1), leading zeros excluded.
_MAX_DIGITS = 20


def _malformed(text, kind):
    return MalformedValueError(
        "cannot parse %r as %s" % (text, kind),
        text=text,
        kind=kind,
        hint="use a valid %s value" % kind,
    )


def _integer(text, kind):
    pattern = _UNSIGNED if kind.name.startswith("UINT") else _SIGNED
    if not pattern.fullmatch(text):
        raise _malformed(text, kind)
    lower, upper = _BOUNDS[kind]
    sign = text[0] if text[0] in "+-" else ""
    digits = text.removeprefix(sign).lstrip("0") or "0"
    if len(digits) > _MAX_DIGITS or not lower <= (value := int(sign + digits)) <= upper:
        raise OutOfRangeError(
            "value %r is out of range for %s" % (text, kind),
            text=text,
            kind=kind,
            hint="use a value between %d and %d" % (lower, upper),
        )
    return value


def _float(text, kind):
    if not _FLOAT.fullmatch(text):
        raise _malformed(text, kind)
    value = float(text)
    # A finite literal that overflows to infinity does not fit 64 bits.
    if math.isinf(value) and "inf" not in text.lower():
        raise OutOfRangeError(
            "value %r is out of range for %s" % (text, kind),
            text=text,
            kind=kind,
            hint="use a value of a smaller magnitude",
        )
    if kind is Kind.FLOAT32:
        try:
            value, = struct.unpack("<f", struct.pack("<f", value))
        except OverflowError:
            raise OutOfRangeError(
                "value %r is out of range for %s" % (text, kind),
                text=text,
                kind=kind,
                hint="use a value of a smaller magnitude",
            ) from None
    return value


def parse(text, kind, /):
    """
    Convert text into a typed value of the given kind.

    Behavior
    - Scalar kinds follow the lexical rules described in the module docstring.
    - Many(element): the text is split on "," and every item is parsed with the
      element kind (used to resolve textual defaults of sequence fields).

    Raises
    - MalformedValueError: the text does not lexically match the kind.
    - OutOfRangeError: the value does not fit the target width.
    - UnsupportedKindError: kind is not part of the closed kind set.
    """
    if not isinstance(text, str):
        raise TypeError("parse() first argument must be a string")

    match kind:
        case Kind.BOOL:
            try:
                return _BOOLEANS[text]
            except KeyError:
                raise _malformed(text, kind) from None
        case (Kind.INT | Kind.INT8 | Kind.INT16 | Kind.INT32 | Kind.INT64 |
              Kind.UINT | Kind.UINT8 | Kind.UINT16 | Kind.UINT32 | Kind.UINT64):
            return _integer(text, kind)
        case Kind.FLOAT32 | Kind.FLOAT64:
            return _float(text, kind)
        case Kind.STRING:
            return text
        case Many(element):
            return [parse(item, element) for item in text.split(",")]
        case _:
            raise UnsupportedKindError(
                "cannot parse %r into unsupported kind %r" % (text, kind),
                text=text,
                kind=kind,
            )


def zero(kind, /):
    """
    Return the value an unset slot of this kind holds (False, 0, 0.0, "" or []).
    """
    match kind:
        case Kind.BOOL:
            return False
        case (Kind.INT | Kind.INT8 | Kind.INT16 | Kind.INT32 | Kind.INT64 |
              Kind.UINT | Kind.UINT8 | Kind.UINT16 | Kind.UINT32 | Kind.UINT64):
            return 0
        case Kind.FLOAT32 | Kind.FLOAT64:
            return 0.0
        case Kind.STRING:
            return ""
        case Many():
            return []
        case _:
            raise UnsupportedKindError("unsupported kind %r" % (kind,), kind=kind)


@final
class Slot:
    """
    Reference to one value slot of a target structure.

    A slot is the (target, attribute name, kind) triple an argument writes into.
    Reads and writes go through getattr/setattr, so field descriptors on the
    target keep control of the storage.
    """
    __slots__ = ("_target", "_name", "_kind")

    def __init__(self, target, name, kind, /):
        if not isinstance(name, str):
            raise TypeError("Slot() name must be a string")
        if not isinstance(kind, Kind | Many):
            raise TypeError("Slot() kind must be a Kind or Many")
        self._target = target
        self._name = name
        self._kind = kind

    @property
    def target(self):
        return self._target

    @property
    def name(self):
        return self._name

    @property
    def kind(self):
        return self._kind

    def get(self):
        return getattr(self._target, self._name)

    def set(self, value, /):
        setattr(self._target, self._name, value)

    def __repr__(self):
        return "Slot(%s.%s: %s)" % (type(self._target).__name__, self._name, self._kind)


def assign(slot, text, /):
    """
    Parse text with the slot's kind and store the result.

    Raises
    - UnsupportedKindError: the slot holds a sequence (use append()).
    - CoercionError: the text cannot be parsed (slot left untouched).
    """
    match slot.kind:
        case Many():
            raise UnsupportedKindError(
                "cannot assign %r to the sequence slot %r" % (text, slot.name),
                text=text,
                kind=slot.kind,
            )
        case _:
            slot.set(parse(text, slot.kind))


def append(slot, text, /):
    """
    Parse text with the slot's element kind and append it, keeping insertion order.

    Raises
    - UnsupportedKindError: the slot does not hold a sequence (use assign()).
    - CoercionError: the text cannot be parsed (slot left untouched).
    """
    match slot.kind:
        case Many(element):
            value = parse(text, element)
            slot.set([*slot.get(), value])
        case _:
            raise UnsupportedKindError(
                "cannot append %r to the non-sequence slot %r" % (text, slot.name),
                text=text,
                kind=slot.kind,
            )


__all__ = (
    "Kind",
    "Many",
    "Slot",
    "parse",
    "assign",
    "append",
    "zero",
)
