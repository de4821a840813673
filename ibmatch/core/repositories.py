import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ibmatch.core.errors import CatalogError
from ibmatch.core.models import MAX_TOTAL_POINTS, Program, RequirementGroup
from ibmatch.core.rule_factory import RequirementFactory

logger = logging.getLogger(__name__)


class ProgramRepository(Protocol):
    def list_programs(self) -> List[Program]:
        ...

    def get(self, program_id: str) -> Optional[Program]:
        ...


class JsonProgramRepository:
    """
    Programs from a programs.json list. Each record may carry its requirements as
    "requirements" (nested groups or notation strings), "requirement_rows" (flat rows
    sharing an or_group_id) or "requirements_notation" (one notation string).

    Ingestion happens once, in the constructor. A program whose requirements do not
    fit the course catalog is logged and left out; `rejected` keeps (id, message)
    pairs. With strict=True the first bad program raises CatalogError instead.
    """

    def __init__(self, programs_json: Any, factory: RequirementFactory, strict: bool = False):
        self.factory = factory
        self.rejected: List[Tuple[str, str]] = []
        self._programs: List[Program] = []
        self._by_id: Dict[str, Program] = {}

        for p in programs_json or []:
            pid = str(p.get("id", "")) if isinstance(p, dict) else ""
            try:
                prog = self._build(p)
                if prog.id in self._by_id:
                    raise CatalogError("duplicate program id")
            except CatalogError as e:
                if strict:
                    raise CatalogError(f"program {pid!r}: {e}") from e
                logger.error("Rejected program %r: %s", pid, e)
                self.rejected.append((pid, str(e)))
                continue
            self._programs.append(prog)
            self._by_id[prog.id] = prog

        logger.info("Loaded %d programs (%d rejected)", len(self._programs), len(self.rejected))

    def _build(self, p: Any) -> Program:
        if not isinstance(p, dict):
            raise CatalogError(f"program record must be an object, got {p!r}")
        if not p.get("id"):
            raise CatalogError("program has no id")

        min_points = p.get("min_ib_points")
        if min_points is None:
            min_points = 0
        if isinstance(min_points, bool) or not isinstance(min_points, int):
            raise CatalogError(f"min_ib_points must be an integer, got {min_points!r}")
        if not 0 <= min_points <= MAX_TOTAL_POINTS:
            raise CatalogError(f"min_ib_points {min_points} outside [0, {MAX_TOTAL_POINTS}]")

        requirements = p.get("requirements") or []
        if not isinstance(requirements, list):
            raise CatalogError(f"requirements must be a list, got {requirements!r}")
        notation = p.get("requirements_notation")
        if notation is not None and not isinstance(notation, str):
            raise CatalogError(f"requirements_notation must be a string, got {notation!r}")

        groups: List[RequirementGroup] = []
        for cfg in requirements:
            groups.append(self.factory.group_from_json(cfg))
        if notation:
            groups.extend(self.factory.groups_from_notation(notation))
        if p.get("requirement_rows"):
            groups.extend(self.factory.groups_from_rows(p["requirement_rows"]))

        return Program(
            id=str(p["id"]),
            name=p.get("name", str(p["id"])),
            min_ib_points=min_points,
            requirement_groups=tuple(groups),
            university=p.get("university", ""),
            country=p.get("country", ""),
            field=p.get("field", ""),
            degree_level=p.get("degree_level", ""),
        )

    def list_programs(self) -> List[Program]:
        return list(self._programs)

    def get(self, program_id: str) -> Optional[Program]:
        return self._by_id.get(program_id)
