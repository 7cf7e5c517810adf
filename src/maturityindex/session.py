"""Immutable session state and the events that move it forward.

`apply(state, event)` is the only way state changes; the scoring engine
reads a state but never writes one.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date

from .answers import EMPTY_ANSWERS, AnswerStore
from .models import Meta, Model


@dataclass(frozen=True)
class SessionState:
    """Model, capability selection, answers and header details."""

    model: Model
    selection: tuple[str, ...] = ()
    answers: AnswerStore = EMPTY_ANSWERS
    meta: Meta = field(default_factory=lambda: Meta(date=date.today().isoformat()))


@dataclass(frozen=True)
class ModelLoaded:
    """A model replaced the current one; answers are kept."""

    model: Model


@dataclass(frozen=True)
class AnswerSet:
    key: str
    index: int
    grade: str


@dataclass(frozen=True)
class CapabilityCleared:
    key: str


@dataclass(frozen=True)
class AnswersImported:
    """Answers replaced wholesale; each field only when supplied."""

    answers: AnswerStore | None = None
    selection: tuple[str, ...] | None = None
    meta: Meta | None = None


@dataclass(frozen=True)
class SelectionToggled:
    key: str


@dataclass(frozen=True)
class SelectAll:
    pass


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class MetaUpdated:
    meta: Meta


@dataclass(frozen=True)
class SnapshotRestored:
    selection: tuple[str, ...]
    answers: AnswerStore
    meta: Meta | None = None


SessionEvent = (
    ModelLoaded
    | AnswerSet
    | CapabilityCleared
    | AnswersImported
    | SelectionToggled
    | SelectAll
    | ClearSelection
    | MetaUpdated
    | SnapshotRestored
)


def new_session(model: Model, today: date | None = None) -> SessionState:
    """Start a session with every capability selected and no answers."""
    day = today or date.today()
    return SessionState(model=model, selection=tuple(model.keys), meta=Meta(date=day.isoformat()))


def apply(state: SessionState, event: SessionEvent) -> SessionState:
    """Return the state after one event."""
    if isinstance(event, ModelLoaded):
        return replace(state, model=event.model, selection=tuple(event.model.keys))
    if isinstance(event, AnswerSet):
        return replace(state, answers=state.answers.set_answer(event.key, event.index, event.grade))
    if isinstance(event, CapabilityCleared):
        return replace(state, answers=state.answers.clear(event.key))
    if isinstance(event, AnswersImported):
        return replace(
            state,
            answers=state.answers if event.answers is None else state.answers.replace_all(event.answers),
            selection=state.selection if event.selection is None else event.selection,
            meta=state.meta if event.meta is None else event.meta,
        )
    if isinstance(event, SelectionToggled):
        if event.key in state.selection:
            return replace(state, selection=tuple(key for key in state.selection if key != event.key))
        return replace(state, selection=state.selection + (event.key,))
    if isinstance(event, SelectAll):
        return replace(state, selection=tuple(state.model.keys))
    if isinstance(event, ClearSelection):
        return replace(state, selection=())
    if isinstance(event, MetaUpdated):
        return replace(state, meta=event.meta)
    if isinstance(event, SnapshotRestored):
        return replace(
            state,
            selection=event.selection,
            answers=state.answers.replace_all(event.answers),
            meta=state.meta if event.meta is None else event.meta,
        )
    raise TypeError(f"Unknown session event: {type(event).__name__}")


def effective_selection(state: SessionState) -> list[str]:
    """Selected keys, or every model key when nothing is selected."""
    if state.selection:
        return list(state.selection)
    return state.model.keys


def next_capability(state: SessionState, current: str | None) -> str | None:
    """Key after `current` in the effective selection, wrapping to the start."""
    keys = effective_selection(state)
    if not keys:
        return None
    if current not in keys:
        return keys[0]
    return keys[(keys.index(current) + 1) % len(keys)]


def previous_capability(state: SessionState, current: str | None) -> str | None:
    """Key before `current` in the effective selection, wrapping to the end."""
    keys = effective_selection(state)
    if not keys:
        return None
    if current not in keys:
        return keys[-1]
    index = keys.index(current)
    return keys[index - 1] if index > 0 else keys[-1]
