"""Answer export payloads and answer import/merge."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import cast

from .answers import AnswerStore
from .errors import InvalidAnswers
from .logging_setup import get_logger
from .models import Meta, Model
from .session import SessionState, effective_selection

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImportedAnswers:
    """Normalized import result; `None` fields were absent from the payload."""

    answers: AnswerStore | None
    selection: tuple[str, ...] | None
    meta: Meta | None
    dropped: int = 0


def _header(state: SessionState, app_name: str, fallback_version: str, now: datetime | None) -> dict[str, object]:
    """Fields shared by both export shapes."""
    exported_at = (now or datetime.now(UTC)).isoformat()
    return {
        "appName": app_name,
        "exportedAt": exported_at,
        "modelVersion": state.model.version or fallback_version,
        "meta": state.meta.to_dict(),
        "modelKeys": state.model.keys,
        "selectedCaps": effective_selection(state),
    }


def build_export(
    state: SessionState, app_name: str, fallback_version: str, now: datetime | None = None
) -> dict[str, object]:
    """Build the index-keyed answer export payload."""
    payload = _header(state, app_name, fallback_version, now)
    payload["answersByCap"] = state.answers.to_dict()
    return payload


def build_text_export(
    state: SessionState, app_name: str, fallback_version: str, now: datetime | None = None
) -> dict[str, object]:
    """Build the export payload that identifies questions by their text.

    Only answers pointing at a question of the current model are listed.
    """
    by_text: dict[str, dict[str, object]] = {}
    for capability in state.model.capabilities:
        answers = state.answers.for_capability(capability.key)
        items: list[dict[str, object]] = []
        for index, question in enumerate(capability.questions):
            label = answers.get(index)
            if label is None:
                continue
            items.append(
                {
                    "question": question.text,
                    "lens": question.lens.value if question.lens is not None else None,
                    "chosenLevel": label,
                    "answerText": question.option_text(label),
                }
            )
        if items:
            by_text[capability.key] = {"name": capability.name, "items": items}

    payload = _header(state, app_name, fallback_version, now)
    payload["answersByText"] = by_text
    return payload


def dumps_export(payload: dict[str, object]) -> str:
    """Serialize an export payload."""
    return json.dumps(payload, indent=2, ensure_ascii=False)


def load_answers_text(text: str) -> dict[str, object]:
    """Decode answers JSON text into its root object."""
    try:
        raw: object = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidAnswers(f"Invalid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise InvalidAnswers("Answers file root must be a JSON object.")
    return cast(dict[str, object], raw)


def parse_answers_payload(raw: object, model: Model) -> ImportedAnswers:
    """Normalize either export shape into answers for `model`.

    Index-keyed payloads (`answersByCap`) are taken as-is. By-text payloads
    (`answersByText`, or a bare capability -> {name, items} mapping) are
    merged onto the current question indices by literal question text.
    """
    if not isinstance(raw, dict):
        raise InvalidAnswers("Answers payload must be a JSON object.")
    payload = cast(dict[str, object], raw)

    dropped = 0
    answers: AnswerStore | None = None
    if payload.get("answersByCap") is not None:
        answers = answers_from_dict(payload["answersByCap"])
    elif payload.get("answersByText") is not None:
        answers, dropped = merge_by_text(model, _require_object(payload["answersByText"], "answersByText"))
    elif payload and all(_is_text_section(value) for value in payload.values()):
        answers, dropped = merge_by_text(model, payload)

    return ImportedAnswers(
        answers=answers,
        selection=_normalize_selection(payload.get("selectedCaps")),
        meta=_normalize_meta(payload.get("meta")),
        dropped=dropped,
    )


def merge_by_text(model: Model, by_text: dict[str, object]) -> tuple[AnswerStore, int]:
    """Rebuild index-keyed answers by matching question text.

    For each capability present in both the payload and the model, every
    item's `question` text claims the first not-yet-claimed question with
    exactly that text. Items whose text matches nothing are dropped; the
    second return value counts them.
    """
    merged: dict[str, dict[int, str]] = {}
    dropped = 0
    for key, section in by_text.items():
        capability = model.get(key)
        if capability is None or not _is_text_section(section):
            continue
        items = cast(list[object], cast(dict[str, object], section)["items"])
        claimed: set[int] = set()
        for item in items:
            if not isinstance(item, dict):
                continue
            row = cast(dict[str, object], item)
            text = row.get("question")
            level = row.get("chosenLevel")
            if not isinstance(text, str) or not isinstance(level, str) or not level:
                continue
            index = next(
                (
                    position
                    for position, question in enumerate(capability.questions)
                    if position not in claimed and question.text == text
                ),
                None,
            )
            if index is None:
                dropped += 1
                logger.debug("Dropped answer for %s: no question with text %r", key, text)
                continue
            claimed.add(index)
            merged.setdefault(key, {})[index] = level
    if dropped:
        logger.warning("Dropped %d imported answers whose question text no longer exists", dropped)
    return AnswerStore(merged), dropped


def _is_text_section(value: object) -> bool:
    return isinstance(value, dict) and isinstance(cast(dict[str, object], value).get("items"), list)


def _require_object(value: object, name: str) -> dict[str, object]:
    if not isinstance(value, dict):
        raise InvalidAnswers(f"`{name}` must be a JSON object.")
    return cast(dict[str, object], value)


def _normalize_index_answers(raw: object) -> dict[str, dict[int, str]]:
    """Normalize `answersByCap`; unusable indices and grades are skipped."""
    sections = _require_object(raw, "answersByCap")
    answers: dict[str, dict[int, str]] = {}
    for key, section in sections.items():
        if not isinstance(section, dict):
            continue
        for raw_index, grade in cast(dict[object, object], section).items():
            index = _coerce_index(raw_index)
            if index is None or not isinstance(grade, str) or not grade:
                logger.debug("Skipping answer %r=%r for %s", raw_index, grade, key)
                continue
            answers.setdefault(str(key), {})[index] = grade
    return answers


def _normalize_selection(raw: object) -> tuple[str, ...] | None:
    if not isinstance(raw, list):
        return None
    return tuple(str(item) for item in cast(list[object], raw) if isinstance(item, str))


def _normalize_meta(raw: object) -> Meta | None:
    if not isinstance(raw, dict):
        return None
    meta = cast(dict[str, object], raw)

    def text(name: str) -> str:
        value = meta.get(name)
        return value if isinstance(value, str) else ""

    return Meta(date=text("date"), customer=text("customer"), assessor=text("assessor"))


def _coerce_index(value: object) -> int | None:
    """Coerce a question index key (string or int) to a non-negative int."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str):
        try:
            index = int(value)
        except ValueError:
            return None
        return index if index >= 0 else None
    return None


def answers_from_dict(raw: object) -> AnswerStore:
    """Build a store from a JSON `answersByCap` mapping (string indices)."""
    return AnswerStore(_normalize_index_answers(raw))
