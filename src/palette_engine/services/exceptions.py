"""Shared service-layer exceptions."""

from __future__ import annotations


class SelectionFailure(Exception):
    """Expected failure while gathering guidance for a selection."""


class LanguageModelError(SelectionFailure):
    """The language model could not be reached or answered with an error."""


class LanguageModelTimeout(LanguageModelError):
    """The language model did not answer within the allotted time."""


class ClassificationParseError(SelectionFailure):
    """A classification reply could not be read as JSON."""
