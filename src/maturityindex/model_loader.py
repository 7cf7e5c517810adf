"""Load and validate questionnaire models from JSON."""

from __future__ import annotations

import hashlib
import json
import math
from importlib import resources
from pathlib import Path
from typing import Any

from .errors import InvalidModel
from .logging_setup import get_logger
from .models import MAX_WEIGHT, Capability, Grade, Lens, Model, Question

CONTENT_PACKAGE = "maturityindex.content"
BUNDLED_MODEL = "model.json"

logger = get_logger(__name__)


def _weight(value: object) -> float | None:
    """Return a usable weight clamped to 0..20, or None for non-numbers."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if math.isnan(value):
        return None
    return max(0.0, min(MAX_WEIGHT, float(value)))


def _question_from_dict(raw: dict[str, Any]) -> Question:
    """Build a question, dropping anything that cannot be scored."""
    raw_options = raw.get("options")
    options: dict[str, str] = {}
    if isinstance(raw_options, dict):
        options = {str(label): str(text) for label, text in raw_options.items()}

    raw_scores = raw.get("scores")
    scores: dict[Grade, float] = {}
    if isinstance(raw_scores, dict):
        for label, value in raw_scores.items():
            grade = Grade.parse(label)
            weight = _weight(value)
            if grade is None or weight is None:
                logger.debug("Ignoring score %r=%r on question %r", label, value, raw.get("text"))
                continue
            scores[grade] = weight

    return Question(
        text=str(raw.get("text", "")),
        lens=Lens.parse(raw.get("lens")),
        options=options,
        scores=scores,
    )


def _capability_from_dict(raw: dict[str, Any]) -> Capability:
    """Build a capability; non-object question entries are skipped."""
    raw_questions = raw.get("questions")
    questions: list[Question] = []
    if isinstance(raw_questions, list):
        questions = [_question_from_dict(item) for item in raw_questions if isinstance(item, dict)]
    key = str(raw.get("key", ""))
    return Capability(
        key=key,
        name=str(raw.get("name") or key),
        description=str(raw.get("description") or ""),
        report_group=str(raw.get("report_group") or ""),
        questions=tuple(questions),
    )


def parse_model(raw: object) -> Model:
    """Accept a parsed JSON value as a model.

    Only the outer shape is enforced: an object holding a `capabilities`
    array. Malformed capabilities and questions degrade to zero-weight
    content instead of rejecting the whole model.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("capabilities"), list):
        raise InvalidModel("Model must have a `capabilities` array.")

    capabilities: list[Capability] = []
    seen: set[str] = set()
    for item in raw["capabilities"]:
        if not isinstance(item, dict):
            logger.debug("Skipping non-object capability entry %r", item)
            continue
        capability = _capability_from_dict(item)
        if capability.key in seen:
            raise InvalidModel(f"Duplicate capability key: {capability.key}")
        seen.add(capability.key)
        capabilities.append(capability)

    version = raw.get("version")
    return Model(
        version=str(version) if version not in (None, "") else None,
        capabilities=tuple(capabilities),
    )


def load_model_text(text: str) -> Model:
    """Parse model JSON text."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidModel(f"Invalid JSON: {exc}") from exc
    return parse_model(raw)


def load_model_file(path: Path | str) -> tuple[Model, str]:
    """Load a model file and return it with its content fingerprint."""
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise InvalidModel(f"Model file is not UTF-8 text: {exc}") from exc
    model = load_model_text(text)
    logger.info("Loaded model %s (version %s, %d capabilities)", path, model.version, len(model.capabilities))
    return model, model_fingerprint(text)


def load_bundled_model() -> tuple[Model, str]:
    """Load the model shipped with the package."""
    text = resources.files(CONTENT_PACKAGE).joinpath(BUNDLED_MODEL).read_text(encoding="utf-8-sig")
    return load_model_text(text), model_fingerprint(text)


def model_fingerprint(text: str) -> str:
    """Return a stable digest of raw model text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
