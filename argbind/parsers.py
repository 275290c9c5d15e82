"""
argbind parser layer: consume tokens into a bound Structure.

What this module provides
- Parser: binds a target Structure, derives its argument specs at
  construction time and offers:
  • parse_args(tokens, lenient=False) / parse_known_args(tokens): one cursor over
    the tokens, prefix-matched options, positionals in order, recursive descent
    into subcommand parsers, then validation.
  • parse_lines(lines) / parse_file(path): "key = value" configuration source
    resolved against the options.
  • usage(), format_help(width), print_help(): rich-based text rendering.
  • trigger(fault): surface a fault with this parser's presentation flags.
- invoke(parser, prompt): process-level runner (parse, dispatch, render faults).

Quick start
    from argbind import Parser, Structure, Field, Kind, invoke

    class Greet(Structure):
        NAME = Field(Kind.STRING, help="who to greet")
        verbose = Field(Kind.BOOL, short="v")

    parser = Parser(Greet(), "greet", "Say hello.", shell=True, colorful=True)
    options = invoke(parser, "--verbose alice")
    print(options.NAME, options.verbose)   # alice True

Matching rules
- a token starting with "-" loses every leading "-" and selects the one option
  whose long or short token starts with the rest; several matches are always
  an AmbiguousArgumentError, even when one of them matches exactly.
- there is no inline "--name=value" form and no short-option clustering.
"""
import copy
import os
import shlex
import sys
from collections import defaultdict
from collections.abc import Iterable

from rich.console import Console
from rich.containers import Lines
from rich.panel import Panel
from rich.text import Text

from .arguments import Argument
from .faults import *
from .faults import console
from .schema import build
from .structures import Structure
from .utils import *

_STYLES = {
    # === Head sections ===
    "usage-label": "bold #00E6FF",  # CYAN → signature info color
    "program-name": "bold #FF4D94",  # MAGENTA-PINK → brand pop
    "description-section": "italic #A3A3A3",  # Neutral gray
    "epilog-section": "#737373",  # Dim footer gray

    # === Groups / arguments ===
    "group-label": "bold #FFFFFF",  # Pure white headers
    "argument-description": "#9CA3AF",  # Muted gray

    # === Fragments ===
    "option-name": "bold #00E6FF",  # CYAN for options
    "flag-name": "bold #22C55E",  # GREEN for flags
    "metavar": "bold #FFD600",  # AMBER for positionals
    "children": "bold #36C5F0",  # Sky-blue subcommands
    "children-description": "#9CA3AF",

    # === Fancy panel ===
    "panel-title": "bold #FF4D94",
}


def _palette():
    return defaultdict(str, _STYLES | getattr(__import__("__main__"), "__styles__", {}))


class Parser:
    """
    Argument parser bound to one target Structure.

    Parameters
    - target: Structure instance receiving the parsed values.
    - prog / descr / epilog: program name (defaults to the script name),
      description and footer used by the help renderer.
    - environ: mapping consulted for "$NAME" default candidates (os.environ).
    - shell / colorful / fancy: presentation flags; nested subcommand parsers
      inherit them.

    Raises
    - TypeError: wrong parameter types.
    - SchemaError: the target declaration is inconsistent (see argbind.schema).
    """

    def __init__(
            self,
            target,
            prog=Unset,
            descr=Unset,
            epilog=Unset,
            *,
            environ=os.environ,
            shell=False,
            colorful=False,
            fancy=False
    ):
        if not isinstance(target, Structure):
            raise TypeError("Parser() 'target' must be a Structure instance")
        for name, object in (("prog", prog), ("descr", descr), ("epilog", epilog)):
            if not isinstance(object, str | Unset):
                raise TypeError("Parser() %r must be a string" % name)
        for name, object in (("shell", shell), ("colorful", colorful), ("fancy", fancy)):
            if not isinstance(object, bool):
                raise TypeError("Parser() %r must be a boolean" % name)

        self._target = target
        self._prog = coalesce(prog, os.path.basename(sys.argv[0]) or "prog")
        self._descr = coalesce(descr, "")
        self._epilog = coalesce(epilog, "")
        self._environ = environ
        self._shell = shell
        self._colorful = colorful
        self._fancy = fancy
        self._optionals = []
        self._positionals = []

        for argument in build(target, environ):
            self.add_argument(argument)

    target = property(lambda self: self._target)
    prog = property(lambda self: self._prog)
    descr = property(lambda self: self._descr)
    epilog = property(lambda self: self._epilog)
    environ = property(lambda self: self._environ)
    shell = property(lambda self: self._shell)
    colorful = property(lambda self: self._colorful)
    fancy = property(lambda self: self._fancy)

    @property
    def optionals(self):
        return tuple(self._optionals)

    @property
    def positionals(self):
        return tuple(self._positionals)

    @property
    def arguments(self):
        """
        Every registered argument: options first, then positionals.
        """
        return (*self._optionals, *self._positionals)

    @property
    def subcommand(self):
        """
        The trailing subcommand argument, or None.
        """
        if self._positionals and self._positionals[-1].subcommand:
            return self._positionals[-1]
        return None

    @property
    def short_description(self):
        return self._descr.split("\n")[0]

    def __repr__(self):
        return "parser(prog=%r, target=%r)" % (self._prog, self._target)

    def __rich_repr__(self):
        yield "prog", self._prog
        yield "target", self._target
        yield "arguments", self.arguments

    def add_argument(self, argument, /):
        """
        Register an argument spec.

        Positional rules
        - nothing may follow a multi-valued or a subcommand positional;
        - a required positional may not follow an optional one.
        Options must not share a long or a short token.

        Raises
        - MisplacedPositionalError / DuplicatedTokenError.
        """
        if not isinstance(argument, Argument):
            raise TypeError("add_argument() argument must be an Argument")
        if argument.parser is not None:
            raise ValueError("add_argument() argument is already registered into a parser")

        if argument.positional:
            if self._positionals:
                last = self._positionals[-1]
                if last.multi:
                    reason = "after a multi-valued positional argument"
                elif last.subcommand:
                    reason = "after a subcommand argument"
                elif last.optional and not argument.optional:
                    reason = "after an optional positional argument"
                else:
                    reason = None
                if reason:
                    raise MisplacedPositionalError(
                        "cannot append positional argument %s %s" % (argument.token, reason),
                        token=argument.token,
                        hint="reorder the fields of %s" % type(self._target).__name__,
                    )
            self._positionals.append(argument)
        else:
            for other in self._optionals:
                if other.token == argument.token or (argument.short and other.short == argument.short):
                    raise DuplicatedTokenError(
                        "option %s conflicts with option %s" % (argument.token, other.token),
                        token=argument.token,
                        hint="give one of them an explicit token or short token",
                    )
            self._optionals.append(argument)
        argument._parser = self  # NOQA: registration owner

    def _find(self, text, token):
        matches = [
            argument for argument in self._optionals
            if argument.token.startswith(text) or (argument.short or "").startswith(text)
        ]
        if len(matches) > 1:
            raise AmbiguousArgumentError(
                "ambiguous optional argument %s" % token,
                token=token,
                hint="could be %s" % ", ".join("--" + argument.token for argument in matches),
            )
        return matches[0] if matches else None

    def parse_args(self, tokens, /, *, lenient=False):
        """
        Consume a token stream into the target, then validate.

        Behavior
        - "-"-prefixed tokens select an option (see the module docstring); value
          options take the next token, flags toggle.
        - other tokens fill the positionals in order; once they are exhausted,
          a trailing multi-valued positional keeps accepting values.
        - filling a subcommand positional hands every remaining token to the
          selected command's parser (same leniency) and ends consumption here.
        - lenient mode skips unknown options and surplus positionals.

        Raises
        - UnknownArgumentError, AmbiguousArgumentError, MissingValueError,
          UnexpectedPositionalError, NotEnoughArgumentsError, InvalidChoiceError,
          UnknownSubcommandError, CoercionError and the validation errors.
        """
        if isinstance(tokens, str) or not isinstance(tokens, Iterable):
            raise TypeError("parse_args() argument must be an iterable of strings")
        tokens = list(tokens)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("parse_args() argument must be an iterable of strings")

        position = 0
        index = 0
        while index < len(tokens):
            token = tokens[index]
            if token.startswith("-"):
                argument = self._find(token.lstrip("-"), token)
                if argument is None:
                    if not lenient:
                        raise UnknownArgumentError(
                            "unknown optional argument %s" % token,
                            token=token,
                            hint="valid options: %s" % (", ".join("--" + other.token for other in self._optionals) or "none"),
                        )
                elif argument.needs_value:
                    if index + 1 >= len(tokens):
                        raise MissingValueError(
                            "missing arguments for %s" % token,
                            token=token,
                            hint="%s expects %s" % (token, argument.metavar),
                        )
                    index += 1
                    argument.set_value(tokens[index])
                else:
                    argument.do_action()
            elif position >= len(self._positionals):
                if self._positionals and self._positionals[-1].multi:
                    self._positionals[-1].set_value(token)
                elif not lenient:
                    raise UnexpectedPositionalError(
                        "unknown positional argument %s" % token,
                        token=token,
                    )
            else:
                argument = self._positionals[position]
                position += 1
                argument.set_value(token)
                if argument.subcommand:
                    argument.subparser.parse_args(tokens[index + 1:], lenient=lenient)
                    break
            index += 1

        if position < len(self._positionals) and not self._positionals[position].optional:
            raise NotEnoughArgumentsError(
                "not enough arguments",
                token=self._positionals[position].token,
                hint="%s is required" % self._positionals[position].render(),
            )
        self.validate()

    def parse_known_args(self, tokens, /):
        """
        parse_args() in lenient mode.
        """
        self.parse_args(tokens, lenient=True)

    def validate(self):
        """
        Validate positionals then options; the first failure is re-raised with
        the argument token prefixed ("<token> error: <message>").
        """
        for argument in (*self._positionals, *self._optionals):
            try:
                argument.validate()
            except ArgumentException as fault:
                raise copy.replace(
                    fault,
                    message="%s error: %s" % (argument.token, fault.message),
                    token=argument.token,
                ) from fault

    def parse_lines(self, lines, /):
        """
        Apply "key = value" lines to the options.

        Behavior
        - blank lines are skipped; keys are trimmed and "_" becomes "-"; values
          are trimmed.
        - keys resolve like option tokens (prefix match on long or short token).
        - unknown keys trigger an UnknownKeyWarning and are skipped.
        - values go through set_value(), choices included; boolean options are
          set from their textual value.
        - no validation runs; parse_args() validates afterwards.

        Raises
        - MalformedLineError: a line without "=" or with an empty key.
        - AmbiguousArgumentError and the set_value() errors.
        """
        if isinstance(lines, str):
            lines = lines.splitlines()
        for number, line in enumerate(lines, 1):
            if not isinstance(line, str):
                raise TypeError("parse_lines() argument must be an iterable of strings")
            if not (line := line.rstrip("\r\n")).strip():
                continue
            key, separator, value = line.partition("=")
            if not separator or not (key := key.strip().replace("_", "-")):
                raise MalformedLineError(
                    "malformed line: %s" % line,
                    line=number,
                    text=line,
                    hint="write options as 'key = value'",
                )
            if (argument := self._find(key, key)) is None:
                self.trigger(UnknownKeyWarning(
                    "cannot find argument %s" % key,
                    line=number,
                    text=key,
                ))
                continue
            argument.set_value(value.strip())

    def parse_file(self, path, /):
        """
        parse_lines() over the lines of a UTF-8 text file. OSError propagates;
        undecodable content is a MalformedLineError.
        """
        with open(path, encoding="utf-8") as file:
            try:
                self.parse_lines(file)
            except UnicodeDecodeError as error:
                raise MalformedLineError(
                    "cannot decode %s as utf-8" % path,
                    text=str(path),
                    hint="save the file with the utf-8 encoding",
                ) from error

    def usage(self):
        """
        "Usage: <prog> <fragments...>" with options first, then positionals;
        multi-valued and subcommand positionals are followed by " ...".
        """
        fragments = [argument.render() for argument in self._optionals]
        for argument in self._positionals:
            fragments.append(argument.render())
            if argument.multi or argument.subcommand:
                fragments.append("...")
        return " ".join(["Usage:", self._prog, *fragments])

    def _render(self, console, width):
        """
        Build the help renderable.

        Palette keys
        - usage-label, program-name, description-section, epilog-section
        - group-label, argument-description
        - option-name, flag-name, metavar, children, children-description
        - panel-title

        Customization
        - Define a mapping named __styles__ in __main__ to override any palette entry.
        - When colorful is False, styling is suppressed.
        """
        styles = _palette()

        def text(fragment, style=""):
            if not self._colorful:
                return Text(str(fragment))
            return Text(str(fragment), styles[style])

        def styleof(argument):
            if argument.subcommand:
                return "children"
            if argument.positional:
                return "metavar"
            return "option-name" if argument.needs_value else "flag-name"

        renders = []

        # Usage line, wrapped with a hanging indent under the first fragment
        usage = Text()
        usage.append(text("Usage", "usage-label")).append(": ")
        usage.append(text(self._prog, "program-name")).append(" ")
        offset = len(usage)

        inputs = [text(argument.render(), styleof(argument)) for argument in self._optionals]
        for argument in self._positionals:
            fragment = text(argument.render(), styleof(argument))
            inputs.append(fragment.append(" ...") if argument.multi or argument.subcommand else fragment)

        lines = Lines()
        for input in inputs:
            if lines and len(lines[-1]) + 1 + len(input) <= width - offset:
                lines[-1].append(Text(" ") + input)
            else:
                lines.append(input)
        for index, line in enumerate(lines):
            usage.append("\n" + " " * offset if index else "").append(line)
        usage.rstrip()
        renders.append(usage)

        if self._descr:
            renders.append(Text("\n").join(text(self._descr, "description-section").wrap(console, width)))

        # Argument groups: fragment at 4 columns, help body at 8
        for label, arguments in (("Positional arguments", self._positionals), ("Optional arguments", self._optionals)):
            if not arguments:
                continue
            group = Text()
            group.append(text(label, "group-label")).append(":")
            for argument in arguments:
                group.append("\n    ").append(text(argument.render(), styleof(argument)))
                if argument.subcommand:
                    for command, (parser, _) in argument.variant:
                        group.append("\n        ").append(text(command, "children"))
                        if description := parser.short_description:
                            group.append("\n          ").append(text(description, "children-description"))
                elif argument.help:
                    for line in text(argument.help, "argument-description").wrap(console, width - 8):
                        group.append("\n        ").append(line)
            renders.append(group)

        if self._epilog:
            renders.append(Text("\n").join(text(self._epilog, "epilog-section").wrap(console, width)))

        return renders

    def format_help(self, width=80):
        """
        Plain help text: usage, description, positional and optional argument
        sections (help bodies wrapped to width), subcommand listings and epilog.
        """
        if not isinstance(width, int) or isinstance(width, bool) or width < 20:
            raise TypeError("format_help() 'width' must be an integer of at least 20")
        renders = self._render(Console(width=width, color_system=None), width)
        return "\n\n".join(render.plain for render in renders) + "\n"

    def print_help(self, *, stderr=False):
        """
        Print the help through a rich console (styled when colorful, framed when fancy).
        """
        console = Console(stderr=stderr)
        width = console.width - 4 * self._fancy
        renderable = Text("\n\n").join(self._render(console, width))
        if self._fancy:
            renderable = Panel(
                renderable,
                title=Text.assemble(
                    "[", " ", f"{self._prog} HELP".upper(), " ", "]",
                    style=_palette()["panel-title"] if self._colorful else "",
                ),
                title_align="left",
            )
        console.print(renderable)

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this parser's context.

        The fault is enriched with tool/shell/fancy/colorful and the host
        documentation of its code, then handed to argbind.faults.trigger(): errors
        are raised (or, in shell mode, printed after the usage line before exiting
        with status 1) and warnings are emitted (or printed in shell mode).
        """
        if (
                not hasattr(fault, "__trigger__") or
                not callable(fault.__trigger__) or
                not hasattr(fault, "__replace__") or
                not callable(fault.__replace__)
        ):
            raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
        fault = copy.replace(
            fault,
            **options,
            tool=self,
            shell=self._shell,
            fancy=self._fancy,
            colorful=self._colorful,
            docs=getdoc(fault.code) if fault.code is not None else None,
        )
        if self._shell and isinstance(fault, ArgumentException):
            console.print(Text(self.usage()))
        trigger(fault)


def invoke(parser, prompt=Unset, /):
    """
    Run a parser as a program.

    Parameters
    - parser: the Parser to run.
    - prompt:
      • Unset: read tokens from sys.argv[1:].
      • str: shell-like string; split via shlex.split.
      • Iterable[str]: pre-tokenized sequence.

    Behavior
    - parses the tokens; faults go through parser.trigger() (raised, or rendered
      and exit(1) in shell mode).
    - with a selected subcommand, its handler is called with the nested parser's
      target and the outcome is returned unchanged; otherwise the parser's target
      is returned. Handler exceptions propagate untouched.
    """
    if not isinstance(parser, Parser):
        raise TypeError("invoke() first argument must be a Parser")

    if prompt is Unset:
        tokens = sys.argv[1:]
    elif isinstance(prompt, str):
        tokens = shlex.split(prompt)
    elif isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() second argument must be a string or an iterable of strings")
    else:
        raise TypeError("invoke() second argument must be a string or an iterable of strings")

    try:
        parser.parse_args(tokens)
    except ArgumentException as fault:
        parser.trigger(fault)

    if (argument := parser.subcommand) is None:
        return parser.target
    return argument.dispatch(argument.subparser.target)


__all__ = (
    "Parser",
    "invoke",
)
