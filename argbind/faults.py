"""
argbind faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain (schema, coercion, parsing, validation, invocation,
  warnings) to keep messages consistent and log searches predictable.
- ArgumentException / ArgumentWarning: base types that carry a message plus
  read-only options and know how to render themselves with rich.
- trigger(): central entry point to surface any fault (raise, warn, or print-and-exit).
- getdoc(): optional description lookup for a code from the host application.

Taxonomy
- SchemaError: the declaration itself is wrong (default on a required positional,
  malformed nargs or default, positional ordering, duplicated tokens).
- CoercionError: text does not lexically match the target kind or is out of range.
- ParseError: the token stream (or a key-value line) cannot be consumed.
- ValidationError: post-parse invariants (requiredness, value counts).
- InvocationError: subcommand selection or handler signature problems.

Integration
- The parser raises faults directly; process-level runners call trigger(fault, **ctx)
  so that shell mode renders them via rich instead of raising.
"""
import copy
import inspect
import sys
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping (by high-level domain)
    - schema (110xx)
      • DEFAULT_ON_REQUIRED, MALFORMED_NARGS, MALFORMED_DEFAULT,
        MISPLACED_POSITIONAL, DUPLICATED_TOKEN
    - coercion (111xx)
      • MALFORMED_VALUE, OUT_OF_RANGE, UNSUPPORTED_KIND
    - parsing (112xx)
      • UNKNOWN_ARGUMENT, AMBIGUOUS_ARGUMENT, MISSING_VALUE, UNEXPECTED_POSITIONAL,
        NOT_ENOUGH_ARGUMENTS, INVALID_CHOICE, MALFORMED_LINE
    - validation (113xx)
      • REQUIRED_ARGUMENT, COUNT_OUT_OF_BOUNDS
    - invocation (114xx)
      • UNKNOWN_SUBCOMMAND, HANDLER_SIGNATURE
    - warnings (12xxx)
      • UNKNOWN_KEY

    spacing leaves room for future additions without reshuffling existing codes.
    """
    # --- schema errors (110xx) ---
    DEFAULT_ON_REQUIRED         = 11001
    MALFORMED_NARGS             = 11002
    MALFORMED_DEFAULT           = 11003
    MISPLACED_POSITIONAL        = 11004
    DUPLICATED_TOKEN            = 11005

    # --- coercion errors (111xx) ---
    MALFORMED_VALUE             = 11101
    OUT_OF_RANGE                = 11102
    UNSUPPORTED_KIND            = 11103

    # --- parsing errors (112xx) ---
    UNKNOWN_ARGUMENT            = 11201
    AMBIGUOUS_ARGUMENT          = 11202
    MISSING_VALUE               = 11203
    UNEXPECTED_POSITIONAL       = 11204
    NOT_ENOUGH_ARGUMENTS        = 11205
    INVALID_CHOICE              = 11206
    MALFORMED_LINE              = 11207

    # --- validation errors (113xx) ---
    REQUIRED_ARGUMENT           = 11301
    COUNT_OUT_OF_BOUNDS         = 11302

    # --- invocation errors (114xx) ---
    UNKNOWN_SUBCOMMAND          = 11401
    HANDLER_SIGNATURE           = 11402

    # --- warnings (12xxx) ---
    UNKNOWN_KEY                 = 12101

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


_ERROR_STYLES = {
    # header parts
    "prog-name": "bold #E6E6F0",  # near-white program name
    "code": "bold #00E5FF",  # neon cyan fault code
    "title": "bold #FF4DA6",  # friendly pinky title

    # body
    "message": "#C8C8D0",  # soft light gray message
    "hint-arrow": "#9CE19C dim",  # gentle green arrow
    "hint": "italic #9CE19C",  # gentle green hint text
}

_WARNING_STYLES = {
    "prog-name": "bold #E6E6F0",
    "code": "bold #FFB400",  # amber fault code for warnings
    "title": "bold #FFC2E0",  # softer pinky title for warnings

    "message": "#D6D6DE",
    "hint-arrow": "#B8EFAF dim",
    "hint": "italic #B8EFAF",
}


def _render(fault, palette, /):
    """
    shared rich renderer for exceptions and warnings.

    options read from the fault
    - tool: the parser that raised it (its prog names the header).
    - colorful: apply the palette (merged with __main__.__styles__).
    - fancy: wrap the body into a Panel titled with the header.
    - title / hint: override the class title, add a one-line hint.
    - docs: host-provided documentation for the code (see getdoc()).
    """
    main = __import__("__main__")
    options = fault.options
    colorful = options.get("colorful", False)
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styles[style])

    prog = getattr(main, "__prog__", getattr(options.get("tool"), "prog", "argbind"))
    code = fault.code.normalize() if fault.code is not None else "-"

    header = Text.assemble(
        "[ ",
        text(prog, "prog-name"),
        " — ",
        text(code, "code"),
        " | ",
        text(options.get("title", fault.title).title(), "title"),
        " ]"
    )
    renders = [text(fault.message, "message")]
    if hint := options.get("hint"):
        renders.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))
    if docs := options.get("docs"):
        renders.append(text(docs, "message"))

    if options.get("fancy", False):
        return Panel(Group(*renders), title=header, title_align="left")

    return Group(header, *renders)


class ArgumentException(Exception):
    """
    base type of every argbind error.

    carries a message (str) and free-form options in a read-only mapping. the
    class-level code and title identify the fault; options may add a hint and
    context such as the token, the offending text or the kind.
    """
    code = None
    title = "argument error"

    def __init__(self, message, /, **options):
        if not isinstance(message, str):
            raise TypeError("%s() message must be a string" % type(self).__name__)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message

    def __rich__(self):
        return _render(self, _ERROR_STYLES)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        message = overrides.pop("message", self.message)
        return type(self)(message, **{**self.options, **overrides})


class SchemaError(ArgumentException):
    title = "schema error"

class DefaultOnRequiredError(SchemaError):
    code = FaultCode.DEFAULT_ON_REQUIRED
    title = "default on required positional"

class MalformedNargsError(SchemaError):
    code = FaultCode.MALFORMED_NARGS
    title = "malformed nargs"

class MalformedDefaultError(SchemaError):
    code = FaultCode.MALFORMED_DEFAULT
    title = "malformed default"

class MisplacedPositionalError(SchemaError):
    code = FaultCode.MISPLACED_POSITIONAL
    title = "misplaced positional"

class DuplicatedTokenError(SchemaError):
    code = FaultCode.DUPLICATED_TOKEN
    title = "duplicated token"


class CoercionError(ArgumentException):
    title = "coercion error"

class MalformedValueError(CoercionError):
    code = FaultCode.MALFORMED_VALUE
    title = "malformed value"

class OutOfRangeError(CoercionError):
    code = FaultCode.OUT_OF_RANGE
    title = "value out of range"

class UnsupportedKindError(CoercionError):
    code = FaultCode.UNSUPPORTED_KIND
    title = "unsupported kind"


class ParseError(ArgumentException):
    title = "parse error"

class UnknownArgumentError(ParseError):
    code = FaultCode.UNKNOWN_ARGUMENT
    title = "unknown argument"

class AmbiguousArgumentError(ParseError):
    code = FaultCode.AMBIGUOUS_ARGUMENT
    title = "ambiguous argument"

class MissingValueError(ParseError):
    code = FaultCode.MISSING_VALUE
    title = "missing value"

class UnexpectedPositionalError(ParseError):
    code = FaultCode.UNEXPECTED_POSITIONAL
    title = "unexpected positional"

class NotEnoughArgumentsError(ParseError):
    code = FaultCode.NOT_ENOUGH_ARGUMENTS
    title = "not enough arguments"

class InvalidChoiceError(ParseError):
    code = FaultCode.INVALID_CHOICE
    title = "invalid choice"

class MalformedLineError(ParseError):
    code = FaultCode.MALFORMED_LINE
    title = "malformed line"


class ValidationError(ArgumentException):
    title = "validation error"

class RequiredArgumentError(ValidationError):
    code = FaultCode.REQUIRED_ARGUMENT
    title = "required argument"

class CountOutOfBoundsError(ValidationError):
    code = FaultCode.COUNT_OUT_OF_BOUNDS
    title = "count out of bounds"


class InvocationError(ArgumentException):
    title = "invocation error"

class UnknownSubcommandError(InvocationError):
    code = FaultCode.UNKNOWN_SUBCOMMAND
    title = "unknown subcommand"

class HandlerSignatureError(InvocationError):
    code = FaultCode.HANDLER_SIGNATURE
    title = "handler signature"


class ArgumentWarning(ABC, Warning):
    """
    base type of every argbind warning (report-and-continue faults).
    """
    code = None
    title = "argument warning"

    def __init__(self, message, /, **options):
        if not isinstance(message, str):
            raise TypeError("%s() message must be a string" % type(self).__name__)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message

    def __rich__(self):
        return _render(self, _WARNING_STYLES)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        message = overrides.pop("message", self.message)
        return type(self)(message, **{**self.options, **overrides})


class UnknownKeyWarning(ArgumentWarning):
    code = FaultCode.UNKNOWN_KEY
    title = "unknown key"


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via copy.replace(fault, **options) before triggering.
    - outside shell mode exceptions are raised and warnings go through warnings.warn;
      in shell mode both are rendered on the stderr console (exceptions then exit with 1).

    typical options
    - tool, shell, fancy, colorful, title, hint, and any context the reporter may
      want to show (e.g., token, text, kind, line).
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    when not found, returns None.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "FaultCode",
    "ArgumentException",
    "SchemaError",
    "DefaultOnRequiredError",
    "MalformedNargsError",
    "MalformedDefaultError",
    "MisplacedPositionalError",
    "DuplicatedTokenError",
    "CoercionError",
    "MalformedValueError",
    "OutOfRangeError",
    "UnsupportedKindError",
    "ParseError",
    "UnknownArgumentError",
    "AmbiguousArgumentError",
    "MissingValueError",
    "UnexpectedPositionalError",
    "NotEnoughArgumentsError",
    "InvalidChoiceError",
    "MalformedLineError",
    "ValidationError",
    "RequiredArgumentError",
    "CountOutOfBoundsError",
    "InvocationError",
    "UnknownSubcommandError",
    "HandlerSignatureError",
    "ArgumentWarning",
    "UnknownKeyWarning",
    "trigger",
    "getdoc",
)
