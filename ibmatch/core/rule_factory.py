from typing import Any, Dict, Iterable, List, Optional, Tuple

from ibmatch.catalog.courses import CourseCatalog
from ibmatch.core.errors import CatalogError
from ibmatch.core.models import MAX_GRADE, MIN_GRADE, Alternative, RequirementGroup
from ibmatch.core.profile import normalize_level

CRITICAL_FLAG = "critical"


class RequirementFactory:
    """
    Build validated RequirementGroups from catalog records.
    Every course code is resolved against the course catalog here, once;
    the evaluator never looks at the catalog again.

    Accepted shapes for one group (see group_from_json):
      - {"critical": true, "alternatives": [{"course": "CHEM", "level": "HL", "min_grade": 5}, ...]}
      - {"course": "MATH-AA", "level": "HL", "min_grade": 6, "critical": false}
      - "PHYS:HL:5:critical" or "(BIO:HL:6|CHEM:HL:6):critical"
    """

    def __init__(self, catalog: CourseCatalog):
        self.catalog = catalog

    # ---------- single alternative ----------
    def alternative(self, course: Any, level: Any, min_grade: Any) -> Alternative:
        subject = self.catalog.get(str(course or ""))
        if subject is None:
            raise CatalogError(f"unknown subject code {course!r}")

        lv = normalize_level(level)
        if lv is None:
            raise CatalogError(f"{subject.code}: invalid level {level!r}, expected HL or SL")
        if not subject.supports(lv):
            raise CatalogError(f"{subject.code}: not offered at {lv}")

        if isinstance(min_grade, bool):
            raise CatalogError(f"{subject.code}: invalid minimum grade {min_grade!r}")
        try:
            grade = int(min_grade)
        except (TypeError, ValueError):
            raise CatalogError(f"{subject.code}: invalid minimum grade {min_grade!r}")
        if grade != min_grade and not isinstance(min_grade, str):
            raise CatalogError(f"{subject.code}: invalid minimum grade {min_grade!r}")
        if not MIN_GRADE <= grade <= MAX_GRADE:
            raise CatalogError(f"{subject.code}: minimum grade {grade} outside [{MIN_GRADE}, {MAX_GRADE}]")

        return Alternative(course_code=subject.code, required_level=lv, min_grade=grade)

    def alternative_from_json(self, cfg: Dict[str, Any]) -> Alternative:
        if not isinstance(cfg, dict):
            raise CatalogError(f"requirement alternative must be an object, got {cfg!r}")
        course = cfg.get("course", cfg.get("code"))
        grade = cfg.get("min_grade", cfg.get("grade"))
        return self.alternative(course, cfg.get("level"), grade)

    def group(self, alternatives: Iterable[Alternative], critical: bool, label: str = "") -> RequirementGroup:
        alts = tuple(alternatives)
        if not alts:
            raise CatalogError("requirement group has no alternatives")
        return RequirementGroup(alternatives=alts, critical=bool(critical), label=label)

    # ---------- nested JSON ----------
    def group_from_json(self, cfg: Any) -> RequirementGroup:
        if isinstance(cfg, str):
            groups = self.groups_from_notation(cfg)
            if len(groups) != 1:
                raise CatalogError(f"expected exactly one requirement in {cfg!r}, got {len(groups)}")
            return groups[0]
        if not isinstance(cfg, dict):
            raise CatalogError(f"unsupported requirement config: {cfg!r}")

        critical = bool(cfg.get("critical", False))
        label = cfg.get("label", "")
        if "alternatives" in cfg:
            raw_alts = cfg.get("alternatives") or []
            if not isinstance(raw_alts, list):
                raise CatalogError(f"alternatives must be a list: {cfg!r}")
            return self.group([self.alternative_from_json(a) for a in raw_alts], critical, label)
        return self.group([self.alternative_from_json(cfg)], critical, label)

    # ---------- compact notation ----------
    def groups_from_notation(self, notation: str) -> List[RequirementGroup]:
        """
        "MATH-AA:HL:5;PHYS:HL:5:critical"           -> two groups
        "(MATH-AA:HL:5|MATH-AI:HL:6)"                -> one OR-group
        "(BIO:HL:6|CHEM:HL:6):critical;ECON:SL:4"    -> critical OR-group and an advisory course
        """
        groups: List[RequirementGroup] = []
        for segment in _split_segments(notation or ""):
            if segment.startswith("("):
                close = segment.rfind(")")
                if close == -1:
                    raise CatalogError(f"unbalanced parentheses in {segment!r}")
                suffix = segment[close + 1:].strip()
                if suffix and suffix.lstrip(":").strip().lower() != CRITICAL_FLAG:
                    raise CatalogError(f"unexpected suffix {suffix!r} in {segment!r}")
                parsed = [self._parse_token(t) for t in segment[1:close].split("|")]
                critical = bool(suffix) or any(c for _, c in parsed)
                groups.append(self.group([a for a, _ in parsed], critical))
            else:
                alt, critical = self._parse_token(segment)
                groups.append(self.group([alt], critical))
        return groups

    def _parse_token(self, token: str) -> Tuple[Alternative, bool]:
        parts = [p.strip() for p in token.strip().split(":")]
        if len(parts) < 3 or len(parts) > 4 or not all(parts):
            raise CatalogError(f"invalid requirement {token!r}, expected CODE:LEVEL:GRADE[:critical]")
        critical = False
        if len(parts) == 4:
            if parts[3].lower() != CRITICAL_FLAG:
                raise CatalogError(f"invalid flag {parts[3]!r} in {token!r}")
            critical = True
        return self.alternative(parts[0], parts[1], parts[2]), critical

    # ---------- flat rows ----------
    def groups_from_rows(self, rows: Iterable[Dict[str, Any]]) -> List[RequirementGroup]:
        """
        Rows sharing an "or_group_id" form one OR-group; rows without one stand alone.
        A group is critical if any of its rows is. Order follows first appearance.
        """
        if not isinstance(rows, list):
            raise CatalogError(f"requirement rows must be a list, got {rows!r}")
        order: List[Tuple[Optional[str], List[Alternative], List[bool]]] = []
        by_key: Dict[str, int] = {}
        for row in rows:
            alt = self.alternative_from_json(row)
            critical = bool(row.get("critical", row.get("is_critical", False)))
            key = row.get("or_group_id")
            if key is None or key == "":
                order.append((None, [alt], [critical]))
                continue
            key = str(key)
            if key not in by_key:
                by_key[key] = len(order)
                order.append((key, [], []))
            _, alts, flags = order[by_key[key]]
            alts.append(alt)
            flags.append(critical)
        return [self.group(alts, any(flags)) for _, alts, flags in order]


def _split_segments(notation: str) -> List[str]:
    segments: List[str] = []
    current = ""
    depth = 0
    for ch in notation:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise CatalogError(f"unbalanced parentheses in {notation!r}")
        if ch == ";" and depth == 0:
            if current.strip():
                segments.append(current.strip())
            current = ""
        else:
            current += ch
    if depth != 0:
        raise CatalogError(f"unbalanced parentheses in {notation!r}")
    if current.strip():
        segments.append(current.strip())
    return segments
