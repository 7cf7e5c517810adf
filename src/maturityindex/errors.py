"""Errors raised at the model and answer import boundaries."""

from __future__ import annotations


class MaturityIndexError(ValueError):
    """Base class for rejected imports."""


class InvalidModel(MaturityIndexError):
    """Model JSON is unreadable or lacks a `capabilities` array."""


class InvalidAnswers(MaturityIndexError):
    """Answers JSON is unreadable or is not an object."""
