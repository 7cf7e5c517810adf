"""Core domain models for questionnaire-based maturity assessment."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

MAX_WEIGHT = 20.0


class Grade(str, Enum):
    """Maturity grade a question can be answered with, ordered low to high."""

    PRE_CRAWL = "Pre-crawl"
    CRAWL = "Crawl"
    WALK = "Walk"
    RUN = "Run"
    FLY = "Fly"

    @classmethod
    def parse(cls, value: object) -> Grade | None:
        """Return the grade for a label, or None when it is not one."""
        if isinstance(value, str):
            for grade in cls:
                if grade.value == value:
                    return grade
        return None


class Lens(str, Enum):
    """Evaluation angle a question may be tagged with."""

    KNOWLEDGE = "Knowledge"
    PROCESS = "Process"
    METRICS = "Metrics"
    ADOPTION = "Adoption"
    AUTOMATION = "Automation"

    @classmethod
    def parse(cls, value: object) -> Lens | None:
        """Return the lens for a label, or None when it is absent or unknown."""
        if isinstance(value, str):
            for lens in cls:
                if lens.value == value:
                    return lens
        return None


GRADES: tuple[Grade, ...] = tuple(Grade)
LENSES: tuple[Lens, ...] = tuple(Lens)


@dataclass(frozen=True)
class Question:
    """One graded question."""

    text: str
    lens: Lens | None = None
    options: Mapping[str, str] = field(default_factory=dict)
    scores: Mapping[Grade, float] = field(default_factory=dict)

    def weight_for(self, label: str | None) -> float | None:
        """Return the weight of an answer label, or None when it is untakeable."""
        grade = Grade.parse(label)
        if grade is None:
            return None
        return self.scores.get(grade)

    def option_text(self, label: str) -> str:
        """Return the option text shown for an answer label."""
        return self.options.get(label) or label


@dataclass(frozen=True)
class Capability:
    """Scored subject area made of ordered questions."""

    key: str
    name: str
    description: str = ""
    report_group: str = ""
    questions: tuple[Question, ...] = ()


@dataclass(frozen=True)
class Model:
    """Questionnaire model, immutable once loaded."""

    version: str | None
    capabilities: tuple[Capability, ...]

    @property
    def keys(self) -> list[str]:
        """Capability keys in display order."""
        return [capability.key for capability in self.capabilities]

    def get(self, key: str) -> Capability | None:
        """Return the capability with a key, if present."""
        for capability in self.capabilities:
            if capability.key == key:
                return capability
        return None


@dataclass(frozen=True)
class Meta:
    """Assessment header details."""

    date: str = ""
    customer: str = ""
    assessor: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return JSON-ready mapping."""
        return {"date": self.date, "customer": self.customer, "assessor": self.assessor}
