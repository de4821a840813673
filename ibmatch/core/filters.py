from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

from ibmatch.core.models import Program


def _norm(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    return frozenset(v.strip().lower() for v in (values or []) if v and v.strip())


@dataclass(frozen=True)
class CatalogFilter:
    """Facet filter applied before matching. An empty facet does not restrict."""

    countries: FrozenSet[str] = frozenset()
    fields: FrozenSet[str] = frozenset()
    degree_levels: FrozenSet[str] = frozenset()
    program_ids: FrozenSet[str] = frozenset()

    @classmethod
    def of(cls, countries=None, fields=None, degree_levels=None, program_ids=None) -> "CatalogFilter":
        return cls(
            countries=_norm(countries),
            fields=_norm(fields),
            degree_levels=_norm(degree_levels),
            program_ids=frozenset(program_ids or []),
        )

    def accepts(self, program: Program) -> bool:
        if self.countries and program.country.lower() not in self.countries:
            return False
        if self.fields and program.field.lower() not in self.fields:
            return False
        if self.degree_levels and program.degree_level.lower() not in self.degree_levels:
            return False
        if self.program_ids and program.id not in self.program_ids:
            return False
        return True

    def apply(self, programs: Iterable[Program]) -> List[Program]:
        return [p for p in programs if self.accepts(p)]


NO_FILTER = CatalogFilter()
