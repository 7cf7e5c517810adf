"""Sparse, immutable answer store keyed by capability and question index."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType


class AnswerStore(Mapping[str, Mapping[int, str]]):
    """Mapping of capability key -> question index -> grade label.

    Every mutation returns a new store. Grade labels are kept verbatim,
    including labels the model cannot score, so they survive export.
    Entries for capabilities or indices missing from the current model are
    inert rather than purged.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Mapping[int, str]] | None = None) -> None:
        frozen: dict[str, Mapping[int, str]] = {}
        for key, by_index in (data or {}).items():
            if by_index:
                frozen[key] = MappingProxyType(dict(by_index))
        self._data = frozen

    def __getitem__(self, key: str) -> Mapping[int, str]:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AnswerStore):
            return self.to_plain() == other.to_plain()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted((key, tuple(sorted(value.items()))) for key, value in self._data.items())))

    def __repr__(self) -> str:
        return f"AnswerStore({self.to_plain()!r})"

    def get_answer(self, key: str, index: int) -> str | None:
        """Return the grade label for one question, if answered."""
        by_index = self._data.get(key)
        if by_index is None:
            return None
        return by_index.get(index)

    def for_capability(self, key: str) -> Mapping[int, str]:
        """Return answers for one capability (empty when none)."""
        return self._data.get(key, MappingProxyType({}))

    def answered_count(self, key: str) -> int:
        """Number of answered questions recorded for a capability."""
        return len(self._data.get(key, {}))

    def set_answer(self, key: str, index: int, grade: str) -> AnswerStore:
        """Return a store with one answer set, overwriting any previous one."""
        updated = self.to_plain()
        updated.setdefault(key, {})[index] = grade
        return AnswerStore(updated)

    def clear(self, key: str) -> AnswerStore:
        """Return a store without any answers for one capability."""
        if key not in self._data:
            return self
        updated = self.to_plain()
        del updated[key]
        return AnswerStore(updated)

    def replace_all(self, mapping: Mapping[str, Mapping[int, str]]) -> AnswerStore:
        """Return a store holding exactly `mapping`."""
        return AnswerStore(mapping)

    def to_plain(self) -> dict[str, dict[int, str]]:
        """Return a mutable deep copy."""
        return {key: dict(by_index) for key, by_index in self._data.items()}

    def to_dict(self) -> dict[str, dict[str, str]]:
        """Return JSON-ready mapping with string question indices."""
        return {
            key: {str(index): grade for index, grade in sorted(by_index.items())}
            for key, by_index in self._data.items()
        }


EMPTY_ANSWERS = AnswerStore()
