r"""
argbind argument model.

Overview
- Argument: one bindable argument spec. It carries the common metadata (token,
  short token, metavar, help, choices, optionality, positional flag, typed
  default) plus a Slot into the target structure, and a variant payload:
  • Scalar(): a single value (booleans are presence-only flags).
  • Multi(minimum, maximum): a sequence slot accepting a bounded number of
    values, -1 meaning unbounded.
  • Subcommands(): an ordered registry of command name -> (nested parser, handler).
- ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes the
  stored metadata through read-only properties.

Capabilities (read-only)
- needs_value, token, short, metavar, choices, optional, positional, multi,
  subcommand, supplied, default, parser.

Operations
- set_value(text): choice check, then assign (Scalar), append (Multi) or command
  selection (Subcommands); marks the argument supplied.
- do_action(): toggles a boolean scalar relative to its default.
- validate(): requiredness, default application, Multi value counts.
- render() / help_string(indent): usage fragment and indented help body.
- Subcommands only: add_subparser(), subparser, dispatch(), sub_help().

Invariants
- a required positional argument never declares a default.
- a subcommand argument is always positional and required.
- Multi: 0 <= minimum, and minimum <= maximum unless maximum is -1.

Quick example:
    >>> from argbind import Parser, Structure, Field, Kind
    >>> class Options(Structure):
    ...     verbose = Field(Kind.BOOL, short="v")
    ...
    >>> argument, = Parser(Options()).arguments
    >>> argument.render()
    '[--verbose]'
"""
import copy
import functools
import inspect
import operator
import re
from typing import final

from .faults import *
from .kinds import Kind, Many, Slot, assign, append
from .utils import *


class ArgumentType(type):
    """
    Metaclass for argument specs.

    Responsibilities
    - __typename__ derived from the class name (camel-case split with hyphens).
    - Read-only properties for every name in __introspectable__ (via mirror()).
    - __repr__/__rich_repr__ listing __displayable__ (falls back to __introspectable__).
    """
    __introspectable__ = ()
    __displayable__ = Unset

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
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


@final
class Scalar:
    """
    Variant payload of single-valued arguments.
    """
    __slots__ = ()
    __match_args__ = ()

    def __eq__(self, other):
        if not isinstance(other, Scalar):
            return NotImplemented
        return True

    def __hash__(self):
        return hash(Scalar)

    def __repr__(self):
        return "Scalar()"


@final
class Multi:
    """
    Variant payload of sequence arguments: accepted value counts in [minimum, maximum].
    """
    __slots__ = ("_minimum", "_maximum")
    __match_args__ = ("minimum", "maximum")

    def __init__(self, minimum, maximum, /):
        for name, object in (("minimum", minimum), ("maximum", maximum)):
            if not isinstance(object, int) or isinstance(object, bool):
                raise TypeError("Multi() %r must be an integer" % name)
        if minimum < 0:
            raise ValueError("Multi() 'minimum' must be a non-negative integer")
        if maximum < -1 or (maximum != -1 and minimum > maximum):
            raise ValueError("Multi() 'maximum' must be -1 (unbounded) or at least 'minimum'")
        self._minimum = minimum
        self._maximum = maximum

    @property
    def minimum(self):
        return self._minimum

    @property
    def maximum(self):
        return self._maximum

    def __eq__(self, other):
        if not isinstance(other, Multi):
            return NotImplemented
        return (self._minimum, self._maximum) == (other._minimum, other._maximum)

    def __hash__(self):
        return hash((Multi, self._minimum, self._maximum))

    def __repr__(self):
        return "Multi(%d, %d)" % (self._minimum, self._maximum)


@final
class Subcommands:
    """
    Variant payload of subcommand arguments.

    Holds the registry of command name -> (nested parser, handler) in
    registration order.
    """
    __slots__ = ("_registry",)
    __match_args__ = ()

    def __init__(self):
        self._registry = {}

    @property
    def commands(self):
        return tuple(self._registry)

    def __contains__(self, command):
        return command in self._registry

    def __getitem__(self, command):
        return self._registry[command]

    def __iter__(self):
        return iter(self._registry.items())

    def register(self, command, parser, handler, /):
        self._registry[command] = (parser, handler)

    def __repr__(self):
        return "Subcommands(%s)" % ", ".join(map(repr, self._registry))


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: validate the metadata of an Argument in place.

    Raises
    - TypeError: wrong types (slot, variant, strings, flags, choices).
    - ValueError: empty token, inconsistent variant/kind pairing.
    - DefaultOnRequiredError: a required positional declares a default.
    """
    if not isinstance(slot := metadata["slot"], Slot):
        raise TypeError(f"{cls.__typename__} 'slot' must be a Slot")

    match metadata["variant"], slot.kind:
        case Scalar(), Many():
            raise ValueError(f"{cls.__typename__} sequence slots require the Multi variant")
        case Multi(), Kind():
            raise ValueError(f"{cls.__typename__} the Multi variant requires a sequence slot")
        case Subcommands(), kind if kind is not Kind.STRING:
            raise ValueError(f"{cls.__typename__} the Subcommands variant requires a STRING slot")
        case Scalar() | Multi() | Subcommands(), _:
            pass
        case _:
            raise TypeError(f"{cls.__typename__} 'variant' must be Scalar, Multi or Subcommands")

    if not isinstance(token := metadata["token"], str):
        raise TypeError(f"{cls.__typename__} 'token' must be a string")
    if not token:
        raise ValueError(f"{cls.__typename__} 'token' cannot be empty")

    for name in ("short", "metavar", "help"):
        if not isinstance(metadata[name], str | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")

    if not isinstance(choices := metadata["choices"], tuple) or not all(isinstance(x, str) for x in choices):
        raise TypeError(f"{cls.__typename__} 'choices' must be a tuple of strings")

    for name in ("optional", "positional"):
        if not isinstance(metadata[name], bool):
            raise TypeError(f"{cls.__typename__} {name!r} must be a boolean")

    if isinstance(metadata["variant"], Subcommands) and (metadata["optional"] or not metadata["positional"]):
        raise ValueError(f"{cls.__typename__} subcommands must be positional and required")

    if metadata["positional"] and not metadata["optional"] and metadata["default"] is not Unset:
        raise DefaultOnRequiredError(
            "a positional non-optional argument should not set a default value",
            token=token,
            hint="drop the default of %r or declare it optional" % token,
        )


class Argument(metaclass=ArgumentType):
    """
    One argument spec bound to a slot of the target structure.

    Arguments are built once by the schema builder, registered into a parser,
    mutated while tokens are consumed and finalized by validate(). Use the
    parser to build them; direct construction is reserved for tests and
    custom schemas.
    """

    __introspectable__ = (
        "slot",
        "variant",
        "token",
        "short",
        "help",
        "optional",
        "positional",
        "default",
        "supplied",
        "parser",
    )

    __displayable__ = (
        "token",
        "short",
        "metavar",
        "choices",
        "optional",
        "positional",
        "default",
        "variant",
    )

    def __init__(
            self,
            slot,
            variant,
            /,
            *,
            token,
            short=Unset,
            metavar=Unset,
            help=Unset,
            choices=(),
            optional=True,
            positional=False,
            default=Unset
    ):
        metadata = {
            "slot": slot,
            "variant": variant,
            "token": token,
            "short": short,
            "metavar": metavar,
            "help": help,
            "choices": choices,
            "optional": optional,
            "positional": positional,
            "default": default,
        }
        _sanitize_metadata(type(self), metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._supplied = False
        self._parser = Unset

    @property
    def needs_value(self):
        """
        False only for boolean scalars, which act as presence flags.
        """
        return not (isinstance(self._variant, Scalar) and self._slot.kind is Kind.BOOL)

    @property
    def metavar(self):
        """
        Explicit metavar, else "{a,b}" from the choices, else the token upper-cased with "-" -> "_".
        """
        if self._metavar is not Unset:
            return self._metavar
        if choices := self.choices:
            return "{%s}" % ",".join(choices)
        return self._token.replace("-", "_").upper()

    @property
    def choices(self):
        if isinstance(self._variant, Subcommands):
            return self._variant.commands
        return self._choices

    @property
    def multi(self):
        return isinstance(self._variant, Multi)

    @property
    def subcommand(self):
        return isinstance(self._variant, Subcommands)

    def render(self):
        """
        Usage fragment: "[...]" when optional, "<...>" otherwise.

        - positional: the metavar ("<NAME>", "[{a,b}]")
        - option: "--token METAVAR", or "--token" for flags
        - subcommand: the upper-cased token ("<ACTION>")
        """
        if isinstance(self._variant, Subcommands):
            return "<%s>" % self._token.upper()
        if self._positional:
            body = self.metavar
        elif self.needs_value:
            body = "--%s %s" % (self._token, self.metavar)
        else:
            body = "--%s" % self._token
        return ("[%s]" if self._optional else "<%s>") % body

    def help_string(self, indent=""):
        """
        Help body with every line prefixed by indent.

        Subcommand arguments list their commands instead, each followed by the
        first description line of its parser.
        """
        if isinstance(self._variant, Subcommands):
            return "".join(
                "%s%s\n%s  %s\n" % (indent, command, indent, parser.short_description)
                for command, (parser, _) in self._variant
            )
        return indent + ("\n" + indent).join(coalesce(self._help, "").split("\n"))

    def _check_choice(self, text):
        if self._choices and text not in self._choices:
            raise InvalidChoiceError(
                "invalid choice %r for %s" % (text, self._token),
                token=self._token,
                text=text,
                hint="choose from %s" % ", ".join(map(repr, self._choices)),
            )

    def set_value(self, text, /):
        """
        Store one textual value.

        Raises
        - InvalidChoiceError: text is not one of the declared choices (slot untouched).
        - CoercionError: text does not parse with the slot kind (slot untouched).
        - UnknownSubcommandError: subcommand name not registered.
        """
        if not isinstance(text, str):
            raise TypeError("set_value() argument must be a string")
        match self._variant:
            case Subcommands():
                if text not in self._variant:
                    raise UnknownSubcommandError(
                        "unknown subcommand %r" % text,
                        token=self._token,
                        text=text,
                        hint="choose from %s" % ", ".join(map(repr, self._variant.commands)),
                    )
                self._slot.set(text)
            case Multi():
                self._check_choice(text)
                append(self._slot, text)
            case Scalar():
                self._check_choice(text)
                assign(self._slot, text)
        self._supplied = True

    def do_action(self):
        """
        Toggle a boolean scalar: the negation of its default, or True without one.
        No-op for value arguments.
        """
        if self.needs_value:
            return
        self._slot.set(not self._default if self._default is not Unset else True)
        self._supplied = True

    def validate(self):
        """
        Finalize the argument after parsing.

        - required, not supplied and without default: RequiredArgumentError.
        - not supplied with a default: the default is copied into the slot.
        - Multi: the number of values must lie in [minimum, maximum]
          (CountOutOfBoundsError naming the violated bound).
        """
        if not self._supplied:
            if self._default is not Unset:
                self._slot.set(copy.copy(self._default))
            elif not self._optional:
                raise RequiredArgumentError(
                    "non-optional argument %s not set" % self._token,
                    token=self._token,
                    hint="provide a value for %s" % self.render(),
                )

        match self._variant:
            case Multi(minimum, maximum):
                count = len(self._slot.get())
                if count < minimum:
                    raise CountOutOfBoundsError(
                        "argument count requires at least %d" % minimum,
                        token=self._token,
                        count=count,
                        minimum=minimum,
                    )
                if maximum >= 0 and count > maximum:
                    raise CountOutOfBoundsError(
                        "argument count requires at most %d" % maximum,
                        token=self._token,
                        count=count,
                        maximum=maximum,
                    )

    def _registry(self, operation):
        if not isinstance(self._variant, Subcommands):
            raise TypeError("%s() is only available on subcommand arguments" % operation)
        return self._variant

    def add_subparser(self, target, command, descr, handler):
        """
        Register a subcommand and return its nested parser.

        The nested parser binds target, is named "<prog> <command>" and inherits
        the environment mapping and the presentation flags of the owning parser.
        The handler is called by dispatch() with one context argument.

        Raises
        - TypeError: not a subcommand argument, not registered into a parser,
          non-string command or non-callable handler.
        - ValueError: empty command.
        - DuplicatedTokenError: command already registered.
        - HandlerSignatureError: handler cannot be called with exactly one positional argument.
        """
        registry = self._registry("add_subparser")
        if self._parser is Unset:
            raise TypeError("add_subparser() requires the argument to be registered into a parser")
        if not isinstance(command, str):
            raise TypeError("add_subparser() 'command' must be a string")
        if not (command := command.strip()):
            raise ValueError("add_subparser() 'command' cannot be empty")
        if command in registry:
            raise DuplicatedTokenError(
                "subcommand %r is already registered" % command,
                token=self._token,
                text=command,
            )
        if not callable(handler):
            raise TypeError("add_subparser() 'handler' must be callable")
        try:
            inspect.signature(handler).bind(object())
        except (TypeError, ValueError):
            raise HandlerSignatureError(
                "handler of %r must accept exactly one positional argument" % command,
                token=self._token,
                text=command,
                hint="declare the handler as 'def handler(context): ...'",
            ) from None

        parent = self._parser
        parser = type(parent)(
            target,
            "%s %s" % (parent.prog, command),
            descr,
            environ=parent.environ,
            shell=parent.shell,
            colorful=parent.colorful,
            fancy=parent.fancy,
        )
        registry.register(command, parser, handler)
        return parser

    @property
    def subparser(self):
        """
        Nested parser of the selected command, or None when nothing (known) is selected.
        """
        registry = self._registry("subparser")
        if (command := self._slot.get()) in registry:
            return registry[command][0]
        return None

    def dispatch(self, context, /):
        """
        Call the selected command's handler with context and return its outcome.
        Exceptions raised by the handler propagate untouched.

        Raises
        - UnknownSubcommandError: no registered command is selected.
        """
        registry = self._registry("dispatch")
        if (command := self._slot.get()) not in registry:
            raise UnknownSubcommandError(
                "unknown subcommand %r" % command,
                token=self._token,
                text=command,
            )
        _, handler = registry[command]
        return handler(context)

    def sub_help(self, command, /):
        """
        Help text of a registered command's parser.

        Raises
        - UnknownSubcommandError: no such command.
        """
        registry = self._registry("sub_help")
        if command not in registry:
            raise UnknownSubcommandError(
                "no such command %r" % command,
                token=self._token,
                text=command,
            )
        return registry[command][0].format_help()


__all__ = (
    "Argument",
    "Scalar",
    "Multi",
    "Subcommands",
)

# Remove the internal metaclass from the module namespace.
del ArgumentType
