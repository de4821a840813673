from typing import Any, Dict, Iterable, List, Optional

from ibmatch.core.models import LEVELS, Subject


class CourseCatalog:
    """
    Recognized IB subjects, keyed by code.

    subjects.json shape:
        {"subjects": [{"code": "MATH-AA", "name": "...", "group": 5, "levels": ["HL", "SL"]}, ...]}
    "levels" defaults to both HL and SL. Codes are matched case-insensitively.
    """

    def __init__(self, subjects: Iterable[Subject]):
        self._by_code: Dict[str, Subject] = {}
        for s in subjects:
            self._by_code[s.code.upper()] = s

    @classmethod
    def from_json(cls, subjects_json: Dict[str, Any]) -> "CourseCatalog":
        subjects: List[Subject] = []
        for row in subjects_json.get("subjects", []):
            levels = [str(lv).upper() for lv in row.get("levels", LEVELS)]
            subjects.append(Subject(
                code=str(row["code"]).upper(),
                name=row.get("name", row["code"]),
                group=int(row.get("group", 0)),
                allowed_levels=frozenset(levels),
            ))
        return cls(subjects)

    def get(self, code: str) -> Optional[Subject]:
        return self._by_code.get((code or "").strip().upper())

    def __contains__(self, code: str) -> bool:
        return self.get(code) is not None

    def __len__(self) -> int:
        return len(self._by_code)

    def subjects(self) -> List[Subject]:
        return sorted(self._by_code.values(), key=lambda s: (s.group, s.code))
