"""Pure scoring over a model, a capability selection and an answer set.

The two normalizations differ:

- capability scores divide by every question in the capability
  (``max(1, questions * 20)``), so unanswered questions pull a score down;
- lens percentages divide only by the questions of that lens that were
  actually answered with a scorable grade.

Answers whose grade the question cannot score contribute nothing and do not
count as answered.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass

from .models import LENSES, MAX_WEIGHT, Capability, Lens, Model
from .tiers import Tier, classify


@dataclass(frozen=True)
class LensAnswer:
    """One scored answer listed under its lens."""

    question: str
    choice: str
    weight20: float
    grade: str


@dataclass(frozen=True)
class LensTotal:
    """Lens sum and answered count within some scope."""

    lens: Lens
    sum20: float = 0.0
    answered: int = 0
    answers: tuple[LensAnswer, ...] = ()

    @property
    def percent(self) -> float:
        return lens_percent(self.sum20, self.answered)


@dataclass(frozen=True)
class CapabilityScore:
    """Totals for one in-scope capability."""

    key: str
    name: str
    report_group: str
    total20: float
    max20: float
    score100: float
    question_count: int
    answered: int
    lens_totals: tuple[LensTotal, ...]
    tier: Tier

    def lens(self, lens: Lens) -> LensTotal:
        for total in self.lens_totals:
            if total.lens is lens:
                return total
        return LensTotal(lens=lens)


@dataclass(frozen=True)
class SpiderPoint:
    """Radar chart point: raw capability total against its maximum."""

    subject: str
    total: float
    full_mark: float


@dataclass(frozen=True)
class Report:
    """Everything the report views need, recomputed from scratch."""

    capabilities: tuple[CapabilityScore, ...]
    overall_score100: float
    tier: Tier
    spider: tuple[SpiderPoint, ...]
    lens_overview: tuple[LensTotal, ...]

    def capability(self, key: str) -> CapabilityScore | None:
        for item in self.capabilities:
            if item.key == key:
                return item
        return None


def lens_percent(sum20: float, answered: int) -> float:
    """Percentage of the answered-only maximum; 0 when nothing was answered."""
    if answered <= 0:
        return 0.0
    return (sum20 / (answered * MAX_WEIGHT)) * 100


def in_scope(model: Model, selected_keys: Collection[str]) -> list[Capability]:
    """Capabilities in model order; an empty selection means all of them."""
    if not selected_keys:
        return list(model.capabilities)
    return [capability for capability in model.capabilities if capability.key in selected_keys]


def score_capability(capability: Capability, answers: Mapping[int, str]) -> CapabilityScore:
    """Score one capability against its answers."""
    total20 = 0.0
    answered = 0
    lens_sums: dict[Lens, float] = {lens: 0.0 for lens in LENSES}
    lens_counts: dict[Lens, int] = {lens: 0 for lens in LENSES}
    lens_answers: dict[Lens, list[LensAnswer]] = {lens: [] for lens in LENSES}

    for index, question in enumerate(capability.questions):
        label = answers.get(index)
        weight = question.weight_for(label)
        if label is None or weight is None:
            continue
        total20 += weight
        answered += 1
        if question.lens is not None:
            lens_sums[question.lens] += weight
            lens_counts[question.lens] += 1
            lens_answers[question.lens].append(
                LensAnswer(question=question.text, choice=question.option_text(label), weight20=weight, grade=label)
            )

    max20 = max(1.0, len(capability.questions) * MAX_WEIGHT)
    score100 = (total20 / max20) * 100
    return CapabilityScore(
        key=capability.key,
        name=capability.name,
        report_group=capability.report_group,
        total20=total20,
        max20=max20,
        score100=score100,
        question_count=len(capability.questions),
        answered=answered,
        lens_totals=tuple(
            LensTotal(lens=lens, sum20=lens_sums[lens], answered=lens_counts[lens], answers=tuple(lens_answers[lens]))
            for lens in LENSES
        ),
        tier=classify(score100),
    )


def score(model: Model, selected_keys: Collection[str], answers: Mapping[str, Mapping[int, str]]) -> Report:
    """Compute the full report for the capabilities in scope."""
    capabilities = tuple(
        score_capability(capability, answers.get(capability.key, {}))
        for capability in in_scope(model, selected_keys)
    )

    overall = sum(item.score100 for item in capabilities) / len(capabilities) if capabilities else 0.0

    overview: list[LensTotal] = []
    for lens in LENSES:
        totals = [item.lens(lens) for item in capabilities]
        overview.append(
            LensTotal(
                lens=lens,
                sum20=sum(total.sum20 for total in totals),
                answered=sum(total.answered for total in totals),
            )
        )

    return Report(
        capabilities=capabilities,
        overall_score100=overall,
        tier=classify(overall),
        spider=tuple(SpiderPoint(subject=item.name, total=item.total20, full_mark=item.max20) for item in capabilities),
        lens_overview=tuple(overview),
    )


def group_by_report_group(report: Report) -> list[tuple[str, list[CapabilityScore]]]:
    """Group capability results by report group, in first-seen order."""
    groups: dict[str, list[CapabilityScore]] = {}
    for item in report.capabilities:
        groups.setdefault(item.report_group, []).append(item)
    return list(groups.items())
