"""
Parsers module behavioral tests (token consumption, validation, rendering, runner).

Scope
- Validate option matching (prefix on long or short token, ambiguity, unknowns).
- Validate positional filling, trailing multi-valued absorption and leniency.
- Validate subcommand delegation and post-parse validation messages.
- Validate usage/help rendering and the invoke() runner.

Conventions
- Test method names follow CamelCase per project convention.
- Parsers get an empty environment mapping and an explicit program name.
"""

from __future__ import annotations

import contextlib
import io
import unittest
from unittest import TestCase

from argbind import Parser, Structure, Field, Kind, Many, invoke
from argbind.faults import (
    UnknownArgumentError,
    AmbiguousArgumentError,
    MissingValueError,
    UnexpectedPositionalError,
    NotEnoughArgumentsError,
    InvalidChoiceError,
    RequiredArgumentError,
    CountOutOfBoundsError,
    ValidationError,
    OutOfRangeError,
)


class Greet(Structure):
    verbose = Field(Kind.BOOL, short="v", help="talk more")
    version = Field(Kind.BOOL)
    count = Field(Kind.INT, short="c", default="1")
    NAME = Field(Kind.STRING, help="who to greet")


class Copy(Structure):
    dry_run = Field(Kind.BOOL)
    FILES = Field(Many(Kind.STRING), nargs="+")


class Run(Structure):
    force = Field(Kind.BOOL, short="f")
    TARGET = Field(Kind.STRING)


class Tool(Structure):
    verbose = Field(Kind.BOOL, short="v")
    ACTION = Field(Kind.STRING, subcommand=True)


def greet():
    options = Greet()
    return options, Parser(options, "greet", "Say hello.\nTo anyone.", "See the manual.", environ={})


class TestOptions(TestCase):
    """Behavioral tests for option matching."""

    def testFlagBeforeOrAfterPositional(self):
        for tokens in (["--verbose", "alice"], ["alice", "--verbose"]):
            options, parser = greet()
            parser.parse_args(tokens)
            self.assertEqual(options.NAME, "alice")
            self.assertIs(options.verbose, True)

    def testShortTokenAndValue(self):
        options, parser = greet()
        parser.parse_args(["-c", "3", "bob"])
        self.assertEqual(options.count, 3)

    def testUniquePrefixSelectsOption(self):
        options, parser = greet()
        parser.parse_args(["--verb", "--co", "2", "bob"])
        self.assertIs(options.verbose, True)
        self.assertEqual(options.count, 2)

    def testSharedPrefixIsAmbiguous(self):
        for tokens in (["--ver", "bob"], ["bob", "--ver"]):
            options, parser = greet()
            with self.assertRaises(AmbiguousArgumentError):
                parser.parse_args(tokens)

    def testExactMatchDoesNotBeatPrefix(self):
        class Listing(Structure):
            list = Field(Kind.BOOL)
            listen = Field(Kind.BOOL)

        with self.assertRaises(AmbiguousArgumentError):
            Parser(Listing(), "tool", environ={}).parse_args(["--list"])

    def testAmbiguityIsNotLenient(self):
        options, parser = greet()
        with self.assertRaises(AmbiguousArgumentError):
            parser.parse_known_args(["--ver", "bob"])

    def testUnknownOption(self):
        options, parser = greet()
        with self.assertRaises(UnknownArgumentError):
            parser.parse_args(["--loud", "bob"])

    def testUnknownOptionSkippedWhenLenient(self):
        options, parser = greet()
        parser.parse_known_args(["--loud", "bob"])
        self.assertEqual(options.NAME, "bob")

    def testMissingValue(self):
        options, parser = greet()
        with self.assertRaises(MissingValueError):
            parser.parse_args(["bob", "--count"])

    def testLeadingDashesAreStripped(self):
        options, parser = greet()
        parser.parse_args(["---verbose", "bob"])
        self.assertIs(options.verbose, True)


class TestPositionals(TestCase):
    """Behavioral tests for positional filling."""

    def testMissingRequiredPositional(self):
        options, parser = greet()
        with self.assertRaises(NotEnoughArgumentsError):
            parser.parse_args([])

    def testSurplusPositional(self):
        options, parser = greet()
        with self.assertRaises(UnexpectedPositionalError):
            parser.parse_args(["alice", "bob"])

    def testSurplusPositionalSkippedWhenLenient(self):
        options, parser = greet()
        parser.parse_known_args(["alice", "bob"])
        self.assertEqual(options.NAME, "alice")

    def testTrailingMultiAbsorbsValues(self):
        options = Copy()
        Parser(options, "copy", environ={}).parse_args(["a", "--dry-run", "b", "c"])
        self.assertEqual(options.FILES, ["a", "b", "c"])
        self.assertIs(options.dry_run, True)

    def testEmptyMultiPositionalIsNotEnough(self):
        with self.assertRaises(NotEnoughArgumentsError):
            Parser(Copy(), "copy", environ={}).parse_args(["--dry-run"])


class TestValidation(TestCase):
    """Behavioral tests for post-parse validation."""

    def testDefaultsAppliedAfterParsing(self):
        options, parser = greet()
        self.assertEqual(options.count, 0)
        parser.parse_args(["bob"])
        self.assertEqual(options.count, 1)

    def testFailureIsPrefixedWithToken(self):
        class Login(Structure):
            password = Field(Kind.STRING, optional=False)

        with self.assertRaises(RequiredArgumentError) as context:
            Parser(Login(), "login", environ={}).parse_args([])
        self.assertTrue(context.exception.message.startswith("password error: "))
        self.assertEqual(context.exception.options["token"], "password")
        self.assertIsInstance(context.exception.__cause__, RequiredArgumentError)

    def testMultiBoundsAreValidated(self):
        class Pair(Structure):
            pair = Field(Many(Kind.INT), nargs=2)

        parser = Parser(Pair(), "pair", environ={})
        with self.assertRaises(CountOutOfBoundsError):
            parser.parse_args(["--pair", "1"])

    def testOversizedIntegerIsCoercionError(self):
        options, parser = greet()
        with self.assertRaises(OutOfRangeError):
            parser.parse_args(["--count", "1" * 5000, "bob"])
        self.assertEqual(options.count, 0)

    def testChoicesEnforcedOnTokens(self):
        class Mode(Structure):
            mode = Field(Kind.STRING, choices=["fast", "safe"])

        options = Mode()
        with self.assertRaises(InvalidChoiceError):
            Parser(options, "mode", environ={}).parse_args(["--mode", "slow"])
        self.assertEqual(options.mode, "")

    def testEnvironmentDefault(self):
        class Server(Structure):
            port = Field(Kind.UINT16, default="$PORT|80")

        options = Server()
        Parser(options, "server", environ={"PORT": "8080"}).parse_args([])
        self.assertEqual(options.port, 8080)


class TestSubcommandDelegation(TestCase):
    """Behavioral tests for recursive descent into subcommands."""

    def setUp(self):
        self.tool = Tool()
        self.run = Run()
        self.parser = Parser(self.tool, "tool", "A tool.", environ={})
        self.parser.subcommand.add_subparser(self.run, "run", "Run a target.", lambda context: context.TARGET)

    def testRemainingTokensGoToSubparser(self):
        self.parser.parse_args(["-v", "run", "--force", "x"])
        self.assertIs(self.tool.verbose, True)
        self.assertEqual(self.tool.ACTION, "run")
        self.assertIs(self.run.force, True)
        self.assertEqual(self.run.TARGET, "x")

    def testParentOptionsAfterCommandBelongToSubparser(self):
        with self.assertRaises(UnknownArgumentError):
            self.parser.parse_args(["run", "x", "--verbose"])

    def testLeniencyReachesSubparser(self):
        self.parser.parse_known_args(["run", "--bogus", "x"])
        self.assertEqual(self.tool.ACTION, "run")
        self.assertEqual(self.run.TARGET, "x")

    def testSubparserValidationRuns(self):
        with self.assertRaises(NotEnoughArgumentsError):
            self.parser.parse_args(["run"])

    def testMissingCommand(self):
        with self.assertRaises(NotEnoughArgumentsError):
            self.parser.parse_args(["-v"])

    def testInvokeDispatchesHandler(self):
        self.assertEqual(invoke(self.parser, "run --force target"), "target")

    def testHelpListsCommands(self):
        help = self.parser.format_help()
        self.assertIn("    <ACTION>\n        run\n          Run a target.", help)


class TestRendering(TestCase):
    """Behavioral tests for usage and help text."""

    def testUsage(self):
        options, parser = greet()
        self.assertEqual(
            parser.usage(),
            "Usage: greet [--verbose] [--version] [--count COUNT] <NAME>",
        )

    def testUsageMarksRepeatablePositionals(self):
        self.assertEqual(Parser(Copy(), "copy", environ={}).usage(), "Usage: copy [--dry-run] <FILES> ...")

    def testHelpSections(self):
        options, parser = greet()
        help = parser.format_help(width=100)
        self.assertTrue(help.startswith("Usage: greet [--verbose] [--version] [--count COUNT] <NAME>\n\nSay hello."))
        self.assertIn("Positional arguments:\n    <NAME>\n        who to greet", help)
        self.assertIn("Optional arguments:\n    [--verbose]\n        talk more\n    [--version]", help)
        self.assertLess(help.index("Positional arguments:"), help.index("Optional arguments:"))
        self.assertTrue(help.endswith("See the manual.\n"))

    def testHelpWrapsLongDescriptions(self):
        class Wordy(Structure):
            text = Field(Kind.STRING, help="word " * 30)

        help = Parser(Wordy(), "wordy", environ={}).format_help(width=40)
        lines = [line for line in help.splitlines() if line.startswith("        word")]
        self.assertGreater(len(lines), 1)
        self.assertTrue(all(len(line) <= 40 for line in lines))

    def testPrintHelp(self):
        options, parser = greet()
        buffer = io.StringIO()
        with contextlib.redirect_stdout(buffer):
            parser.print_help()
        self.assertIn("Positional arguments:", buffer.getvalue())
        self.assertIn("who to greet", buffer.getvalue())

    def testShortDescription(self):
        options, parser = greet()
        self.assertEqual(parser.short_description, "Say hello.")


class TestInvoke(TestCase):
    """Behavioral tests for the invoke() runner."""

    def testReturnsTargetWithoutSubcommand(self):
        options, parser = greet()
        self.assertIs(invoke(parser, "--verbose 'alice smith'"), options)
        self.assertEqual(options.NAME, "alice smith")

    def testAcceptsTokenLists(self):
        options, parser = greet()
        invoke(parser, ["-c", "5", "bob"])
        self.assertEqual(options.count, 5)

    def testFaultsRaiseOutsideShellMode(self):
        options, parser = greet()
        with self.assertRaises(NotEnoughArgumentsError) as context:
            invoke(parser, "")
        self.assertIs(context.exception.options["tool"], parser)

    def testShellModeExitsWithStatusOne(self):
        options = Greet()
        parser = Parser(options, "greet", environ={}, shell=True)
        with self.assertRaises(SystemExit) as context:
            invoke(parser, "--nope")
        self.assertEqual(context.exception.code, 1)

    def testPromptTypeChecked(self):
        options, parser = greet()
        with self.assertRaises(TypeError):
            invoke(parser, 42)
        with self.assertRaises(TypeError):
            invoke(options, "bob")

    def testValidationFaultsAreValidationErrors(self):
        class Login(Structure):
            password = Field(Kind.STRING, optional=False)

        with self.assertRaises(ValidationError):
            invoke(Parser(Login(), "login", environ={}), [])


if __name__ == "__main__":
    unittest.main()
