"""Application service for model loading, answering, reporting and snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import Settings, get_settings
from .errors import InvalidAnswers
from .logging_setup import get_logger
from .model_loader import load_bundled_model, load_model_file
from .models import Capability, Meta, Model
from .scoring import Report, score
from .session import (
    AnswersImported,
    AnswerSet,
    CapabilityCleared,
    ClearSelection,
    MetaUpdated,
    ModelLoaded,
    SelectAll,
    SelectionToggled,
    SessionEvent,
    SessionState,
    SnapshotRestored,
    apply,
    effective_selection,
    new_session,
    next_capability,
    previous_capability,
)
from .snapshots import MODEL_FINGERPRINT_KEY, Snapshot, SnapshotStore, new_snapshot
from .transfer import (
    answers_from_dict,
    build_export,
    build_text_export,
    dumps_export,
    load_answers_text,
    parse_answers_payload,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class CapabilityProgress:
    """Answered/total question counts for one capability."""

    key: str
    name: str
    answered: int
    total: int


@dataclass(frozen=True)
class TransferSummary:
    """Summary emitted by answer export/import operations."""

    path: str
    capabilities: int
    answers: int
    dropped: int = 0


class AssessmentService:
    """Coordinates the session state, the scoring engine and snapshot history."""

    def __init__(
        self,
        db_path: Path | str,
        model_path: Path | str | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Load the model (bundled when no path is given) and open the snapshot store."""
        self.settings = settings or get_settings()
        if model_path is None:
            model, fingerprint = load_bundled_model()
            self.model_source = "bundled"
        else:
            model, fingerprint = load_model_file(model_path)
            self.model_source = str(model_path)
        self.snapshots = SnapshotStore(db_path)
        self.model_changed = self._remember_fingerprint(fingerprint)
        self._state = new_session(model)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def model(self) -> Model:
        return self._state.model

    def dispatch(self, event: SessionEvent) -> SessionState:
        """Apply one event to the session state."""
        self._state = apply(self._state, event)
        return self._state

    def _remember_fingerprint(self, fingerprint: str) -> bool:
        """Store the model fingerprint; return whether it differs from the last run."""
        previous = self.snapshots.get_setting(MODEL_FINGERPRINT_KEY)
        if previous == fingerprint:
            return False
        self.snapshots.set_setting(MODEL_FINGERPRINT_KEY, fingerprint)
        if previous is not None:
            logger.info("Model content changed since the last run")
        return previous is not None

    def load_model(self, model_path: Path | str) -> Model:
        """Replace the model from a file; selection resets to all capabilities.

        Raises `InvalidModel` (state unchanged) when the file is not a model.
        """
        model, fingerprint = load_model_file(model_path)
        self.model_changed = self._remember_fingerprint(fingerprint)
        self.model_source = str(model_path)
        self.dispatch(ModelLoaded(model=model))
        return model

    def report(self) -> Report:
        """Recompute the report from the current state."""
        return score(self._state.model, self._state.selection, self._state.answers)

    def selected_keys(self) -> list[str]:
        """Capability keys in scope (all when the selection is empty)."""
        return effective_selection(self._state)

    def selected_capabilities(self) -> list[Capability]:
        keys = set(self.selected_keys())
        return [capability for capability in self.model.capabilities if capability.key in keys]

    def toggle_capability(self, key: str) -> None:
        self.dispatch(SelectionToggled(key=key))

    def select_all(self) -> None:
        self.dispatch(SelectAll())

    def clear_selection(self) -> None:
        self.dispatch(ClearSelection())

    def set_answer(self, key: str, index: int, grade: str) -> None:
        """Record one answer, replacing any previous answer to that question."""
        self.dispatch(AnswerSet(key=key, index=index, grade=grade))

    def clear_capability(self, key: str) -> None:
        """Remove every answer recorded for one capability."""
        self.dispatch(CapabilityCleared(key=key))

    def update_meta(
        self, *, date: str | None = None, customer: str | None = None, assessor: str | None = None
    ) -> Meta:
        """Update header fields that are given; others keep their value."""
        current = self._state.meta
        meta = Meta(
            date=current.date if date is None else date,
            customer=current.customer if customer is None else customer,
            assessor=current.assessor if assessor is None else assessor,
        )
        self.dispatch(MetaUpdated(meta=meta))
        return meta

    def capability_progress(self, key: str) -> CapabilityProgress:
        """Count answers that point at an existing question of a capability."""
        capability = self.model.get(key)
        if capability is None:
            raise KeyError(key)
        total = len(capability.questions)
        answered = len([index for index in self._state.answers.for_capability(key) if 0 <= index < total])
        return CapabilityProgress(key=key, name=capability.name, answered=answered, total=total)

    def next_capability(self, current: str | None) -> str | None:
        return next_capability(self._state, current)

    def previous_capability(self, current: str | None) -> str | None:
        return previous_capability(self._state, current)

    def export_payload(self, by_text: bool = False) -> dict[str, object]:
        """Build the answer export payload for the current state."""
        builder = build_text_export if by_text else build_export
        return builder(self._state, self.settings.app_name, self.settings.model_version_fallback)

    def export_answers(self, export_path: Path | str, by_text: bool = False) -> TransferSummary:
        """Write the answer export JSON file."""
        payload = self.export_payload(by_text=by_text)
        path = Path(export_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dumps_export(payload), encoding="utf-8")
        answers = self._state.answers
        logger.info("Exported answers to %s", path)
        return TransferSummary(
            path=str(path),
            capabilities=len(answers),
            answers=sum(len(by_index) for by_index in answers.values()),
        )

    def import_answers_text(self, text: str, source: str = "<text>") -> TransferSummary:
        """Import answers from JSON text in either export shape.

        Raises `InvalidAnswers` (state unchanged) when the text is not an
        answers object.
        """
        imported = parse_answers_payload(load_answers_text(text), self.model)
        self.dispatch(AnswersImported(answers=imported.answers, selection=imported.selection, meta=imported.meta))
        answers = imported.answers
        logger.info("Imported answers from %s (%d dropped)", source, imported.dropped)
        return TransferSummary(
            path=source,
            capabilities=len(answers) if answers is not None else 0,
            answers=sum(len(by_index) for by_index in answers.values()) if answers is not None else 0,
            dropped=imported.dropped,
        )

    def import_answers(self, import_path: Path | str) -> TransferSummary:
        """Import an answers export file."""
        path = Path(import_path)
        try:
            text = path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as exc:
            raise InvalidAnswers(f"Answers file is not UTF-8 text: {exc}") from exc
        return self.import_answers_text(text, source=str(path))

    def save_snapshot(self) -> Snapshot:
        """Store the current selection, answers and meta in snapshot history."""
        snapshot = new_snapshot(
            version=self.model.version or self.settings.model_version_fallback,
            selected_caps=self.selected_keys(),
            answers_by_cap=self._state.answers.to_dict(),
            meta=self._state.meta.to_dict(),
        )
        return self.snapshots.save(snapshot)

    def list_snapshots(self) -> list[Snapshot]:
        return self.snapshots.list_snapshots()

    def restore_snapshot(self, snapshot_id: str) -> bool:
        """Replace selection, answers and meta from a snapshot."""
        snapshot = self.snapshots.get(snapshot_id)
        if snapshot is None:
            return False
        meta = None
        if snapshot.meta:
            meta = Meta(
                date=str(snapshot.meta.get("date", "")),
                customer=str(snapshot.meta.get("customer", "")),
                assessor=str(snapshot.meta.get("assessor", "")),
            )
        self.dispatch(
            SnapshotRestored(
                selection=tuple(snapshot.selected_caps),
                answers=answers_from_dict(snapshot.answers_by_cap),
                meta=meta,
            )
        )
        logger.info("Restored snapshot %s", snapshot_id)
        return True

    def delete_snapshot(self, snapshot_id: str) -> bool:
        return self.snapshots.delete(snapshot_id)

    def close(self) -> None:
        """Close resources."""
        self.snapshots.close()
