"""
Faults module behavioral tests (codes, taxonomy, triggering, rendering).

Scope
- Validate fault construction (message type, read-only options, copy.replace merging).
- Validate trigger(): raise / warn outside shell mode, print-and-exit in shell mode.
- Validate the taxonomy the rest of the package relies on.
- Validate the rich rendering of faults.

Conventions
- Test method names follow CamelCase per project convention.
- Rendering is captured through a rich Console writing into a StringIO.
"""

from __future__ import annotations

import copy
import io
import unittest
from unittest import TestCase

from rich.console import Console

from argbind.faults import (
    FaultCode,
    ArgumentException,
    SchemaError,
    CoercionError,
    ParseError,
    ValidationError,
    InvocationError,
    DefaultOnRequiredError,
    MalformedValueError,
    OutOfRangeError,
    UnknownArgumentError,
    MalformedLineError,
    RequiredArgumentError,
    CountOutOfBoundsError,
    UnknownSubcommandError,
    HandlerSignatureError,
    UnknownKeyWarning,
    trigger,
    getdoc,
)


class TestFaultCodes(TestCase):
    """Behavioral tests for FaultCode."""

    def testNormalizeWithoutHostMapping(self):
        self.assertEqual(FaultCode.DEFAULT_ON_REQUIRED.normalize(), "11001")

    def testCodesAreUnique(self):
        self.assertEqual(len({code.value for code in FaultCode}), len(FaultCode))

    def testGetdoc(self):
        self.assertIsNone(getdoc(FaultCode.UNKNOWN_ARGUMENT))
        with self.assertRaises(TypeError):
            getdoc(11201)


class TestConstruction(TestCase):
    """Behavioral tests for fault construction and replacement."""

    def testMessageMustBeString(self):
        with self.assertRaises(TypeError):
            UnknownArgumentError(42)
        with self.assertRaises(TypeError):
            UnknownKeyWarning(None)

    def testOptionsAreReadOnly(self):
        fault = UnknownArgumentError("unknown optional argument --x", token="--x")
        self.assertEqual(fault.options["token"], "--x")
        with self.assertRaises(TypeError):
            fault.options["token"] = "--y"

    def testStrIsMessage(self):
        self.assertEqual(str(MalformedLineError("malformed line: x")), "malformed line: x")

    def testReplaceMergesOptions(self):
        fault = RequiredArgumentError("non-optional argument name not set", token="NAME")
        replaced = copy.replace(fault, message="NAME error: missing", shell=False)
        self.assertIsInstance(replaced, RequiredArgumentError)
        self.assertEqual(replaced.message, "NAME error: missing")
        self.assertEqual(dict(replaced.options), {"token": "NAME", "shell": False})
        self.assertEqual(fault.message, "non-optional argument name not set")

    def testClassLevelCodes(self):
        self.assertIs(UnknownArgumentError.code, FaultCode.UNKNOWN_ARGUMENT)
        self.assertIs(UnknownKeyWarning.code, FaultCode.UNKNOWN_KEY)
        self.assertIsNone(ParseError.code)


class TestTaxonomy(TestCase):
    """Behavioral tests for the fault hierarchy."""

    def testFamilies(self):
        for fault, family in (
            (DefaultOnRequiredError, SchemaError),
            (MalformedValueError, CoercionError),
            (OutOfRangeError, CoercionError),
            (UnknownArgumentError, ParseError),
            (MalformedLineError, ParseError),
            (RequiredArgumentError, ValidationError),
            (CountOutOfBoundsError, ValidationError),
            (UnknownSubcommandError, InvocationError),
            (HandlerSignatureError, InvocationError),
        ):
            self.assertTrue(issubclass(fault, family))
            self.assertTrue(issubclass(family, ArgumentException))

    def testWarningsAreNotErrors(self):
        self.assertTrue(issubclass(UnknownKeyWarning, Warning))
        self.assertFalse(issubclass(UnknownKeyWarning, ArgumentException))


class TestTrigger(TestCase):
    """Behavioral tests for trigger()."""

    def testErrorsAreRaised(self):
        with self.assertRaises(UnknownArgumentError) as context:
            trigger(UnknownArgumentError("unknown optional argument --x"), token="--x")
        self.assertEqual(context.exception.options["token"], "--x")

    def testErrorsExitInShellMode(self):
        with self.assertRaises(SystemExit) as context:
            trigger(UnknownArgumentError("unknown optional argument --x"), shell=True)
        self.assertEqual(context.exception.code, 1)

    def testWarningsAreEmitted(self):
        with self.assertWarns(UnknownKeyWarning) as context:
            trigger(UnknownKeyWarning("cannot find argument x"), line=3)
        self.assertEqual(context.warning.options["line"], 3)

    def testRejectsPlainObjects(self):
        with self.assertRaises(TypeError):
            trigger(ValueError("plain"))


class TestRendering(TestCase):
    """Behavioral tests for the rich renderable of faults."""

    def render(self, fault):
        buffer = io.StringIO()
        Console(file=buffer, width=80, color_system=None).print(fault)
        return buffer.getvalue()

    def testHeaderAndMessage(self):
        output = self.render(UnknownArgumentError("unknown optional argument --x", hint="valid options: --y"))
        self.assertIn("11201", output)
        self.assertIn("Unknown Argument", output)
        self.assertIn("unknown optional argument --x", output)
        self.assertIn("valid options: --y", output)

    def testTitleOverride(self):
        output = self.render(UnknownKeyWarning("cannot find argument x", title="config"))
        self.assertIn("Config", output)
        self.assertIn("12101", output)

    def testFancyPanel(self):
        output = self.render(MalformedLineError("malformed line: x", fancy=True))
        self.assertIn("malformed line: x", output)
        self.assertIn("Malformed Line", output)


if __name__ == "__main__":
    unittest.main()
