"""Composable filter queries over an NPPES dataset."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Callable, Iterable, Iterator

from .codes import EntityType
from .models import NppesRecord

if TYPE_CHECKING:
    from .dataset import NppesDataset


@dataclass(frozen=True)
class Predicate:
    """One filter in a query.

    ``index_key`` names a secondary index entry (index name, key) that
    contains every record the predicate can match.
    """

    name: str
    test: Callable[[NppesRecord], bool]
    index_key: tuple[str, str] | None = None


class QueryBuilder:
    """AND-of-predicates query.

    Builder methods return self for chaining::

        dataset.query().state("CA").taxonomy("207Q00000X").active_only().execute()

    Execution scans providers in file order. When exactly one predicate is
    an equality on an indexed attribute and the dataset is indexed, the scan
    starts from that index entry instead of the full record list.
    """

    def __init__(self, dataset: NppesDataset) -> None:
        self._dataset = dataset
        self._predicates: list[Predicate] = []
        self._limit: int | None = None

    @property
    def predicates(self) -> list[Predicate]:
        return list(self._predicates)

    def where(
        self,
        test: Callable[[NppesRecord], bool],
        name: str = "custom",
    ) -> QueryBuilder:
        """Add an arbitrary predicate."""
        self._predicates.append(Predicate(name, test))
        return self

    def state(self, state_code: str) -> QueryBuilder:
        """Mailing address in ``state_code`` (case-insensitive)."""
        key = state_code.strip().upper()

        def test(record: NppesRecord) -> bool:
            state = record.mailing_address.state
            return state is not None and state.as_code() == key

        self._predicates.append(Predicate(f"state={key}", test, ("state", key)))
        return self

    def state_in(self, state_codes: Iterable[str]) -> QueryBuilder:
        """Mailing address in any of ``state_codes``."""
        keys = frozenset(code.strip().upper() for code in state_codes)

        def test(record: NppesRecord) -> bool:
            state = record.mailing_address.state
            return state is not None and state.as_code() in keys

        self._predicates.append(Predicate(f"state in {sorted(keys)}", test))
        return self

    def taxonomy(self, code: str) -> QueryBuilder:
        """Any taxonomy assignment equal to ``code``."""
        key = code.strip()

        def test(record: NppesRecord) -> bool:
            return any(t.code == key for t in record.taxonomy_codes)

        self._predicates.append(Predicate(f"taxonomy={key}", test, ("taxonomy", key)))
        return self

    def specialty(self, display_name: str) -> QueryBuilder:
        """Any assignment whose taxonomy display name contains ``display_name``.

        The match is a case-insensitive substring against the taxonomy
        reference map; without a reference map nothing matches.
        """
        needle = display_name.strip().lower()
        codes = frozenset(
            ref.code
            for ref in self._dataset.taxonomy_reference.values()
            if ref.display_name and needle in ref.display_name.lower()
        )

        def test(record: NppesRecord) -> bool:
            return any(t.code in codes for t in record.taxonomy_codes)

        self._predicates.append(Predicate(f"specialty~{needle}", test))
        return self

    def entity_type(self, entity_type: EntityType | str) -> QueryBuilder:
        """Providers of one entity type.

        Raises:
            InvalidEntityTypeError: If given an unknown code string
        """
        if not isinstance(entity_type, EntityType):
            entity_type = EntityType.from_code(entity_type)
        self._predicates.append(
            Predicate(
                f"entity_type={entity_type.as_code() if entity_type else None}",
                lambda record: record.entity_type == entity_type,
            )
        )
        return self

    def active_only(self) -> QueryBuilder:
        """Providers without a deactivation date."""
        self._predicates.append(Predicate("active", lambda record: record.is_active()))
        return self

    def enumerated_between(self, start: date, end: date) -> QueryBuilder:
        """Enumeration date within ``start``..``end`` inclusive."""

        def test(record: NppesRecord) -> bool:
            enumerated = record.enumeration_date
            return enumerated is not None and start <= enumerated <= end

        self._predicates.append(Predicate(f"enumerated {start}..{end}", test))
        return self

    def limit(self, n: int) -> QueryBuilder:
        """Stop after ``n`` matches."""
        if n < 0:
            raise ValueError("limit must be non-negative")
        self._limit = n
        return self

    def _candidates(self) -> Iterator[NppesRecord]:
        providers = self._dataset.providers
        hints = [p.index_key for p in self._predicates if p.index_key is not None]
        if len(hints) == 1:
            positions = self._dataset.index_positions(*hints[0])
            if positions is not None:
                return (providers[p] for p in positions)
        return iter(providers)

    def __iter__(self) -> Iterator[NppesRecord]:
        if self._limit == 0:
            return
        matched = 0
        predicates = [p.test for p in self._predicates]
        for record in self._candidates():
            if all(test(record) for test in predicates):
                yield record
                matched += 1
                if self._limit is not None and matched >= self._limit:
                    return

    def execute(self) -> list[NppesRecord]:
        """Matching records in file order."""
        return list(self)

    def count(self) -> int:
        """Number of matching records (capped by any limit)."""
        return sum(1 for _ in self)
