from typing import Any, Dict, List, Optional, Set

from ibmatch.catalog.courses import CourseCatalog
from ibmatch.core.errors import ValidationError
from ibmatch.core.models import (
    CandidateProfile,
    HL,
    MAX_GRADE,
    MAX_TOTAL_POINTS,
    MIN_GRADE,
    SL,
    SubjectResult,
)

_LEVEL_ALIASES = {
    "HL": HL,
    "HIGHER": HL,
    "HIGHER LEVEL": HL,
    "SL": SL,
    "STANDARD": SL,
    "STANDARD LEVEL": SL,
}


def normalize_level(raw: Any) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    return _LEVEL_ALIASES.get(raw.strip().upper())


def _as_int(raw: Any) -> Optional[int]:
    # bool is an int subclass; True is not a grade
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            return None
    return None


class ProfileBuilder:
    """
    Turns raw candidate input into a CandidateProfile.

    Raw input:
        {"subjects": [{"code": "CHEM", "level": "HL", "grade": 6}, ...], "total_points": 38}

    Any extra keys (e.g. "predicted") are ignored: whether a grade is predicted or
    final is the caller's concern. total_points is trusted as given, since core
    bonus points are not part of the subject list.
    """

    def __init__(self, catalog: CourseCatalog):
        self.catalog = catalog

    def build(self, raw: Dict[str, Any]) -> CandidateProfile:
        if not isinstance(raw, dict):
            raise ValidationError(["input must be an object"])

        errors: List[str] = []
        subjects: List[SubjectResult] = []
        seen: Set[str] = set()

        raw_subjects = raw.get("subjects") or []
        if not isinstance(raw_subjects, list):
            errors.append("subjects must be a list")
            raw_subjects = []

        for i, item in enumerate(raw_subjects):
            if not isinstance(item, dict):
                errors.append(f"subjects[{i}]: must be an object")
                continue
            result = self._build_subject(i, item, seen, errors)
            if result is not None:
                subjects.append(result)

        total = _as_int(raw.get("total_points"))
        if total is None:
            errors.append(f"total_points: expected an integer, got {raw.get('total_points')!r}")
        elif not 0 <= total <= MAX_TOTAL_POINTS:
            errors.append(f"total_points: {total} outside [0, {MAX_TOTAL_POINTS}]")

        if errors:
            raise ValidationError(errors)
        return CandidateProfile(subjects=tuple(subjects), total_points=total)

    def _build_subject(self, i: int, item: Dict[str, Any], seen: Set[str],
                       errors: List[str]) -> Optional[SubjectResult]:
        code = str(item.get("code") or "").strip().upper()
        subject = self.catalog.get(code)
        if subject is None:
            errors.append(f"subjects[{i}]: unknown subject code {item.get('code')!r}")
            return None
        if code in seen:
            errors.append(f"subjects[{i}]: duplicate subject {code}")
            return None
        seen.add(code)

        ok = True
        level = normalize_level(item.get("level"))
        if level is None:
            errors.append(f"subjects[{i}]: {code} level {item.get('level')!r} is not HL or SL")
            ok = False
        elif not subject.supports(level):
            errors.append(f"subjects[{i}]: {code} is not offered at {level}")
            ok = False

        grade = _as_int(item.get("grade"))
        if grade is None or not MIN_GRADE <= grade <= MAX_GRADE:
            errors.append(f"subjects[{i}]: {code} grade {item.get('grade')!r} outside [{MIN_GRADE}, {MAX_GRADE}]")
            ok = False

        if not ok:
            return None
        return SubjectResult(code=code, level=level, grade=grade)
