from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

HL = "HL"
SL = "SL"
LEVELS = (HL, SL)

MIN_GRADE = 1
MAX_GRADE = 7
MAX_TOTAL_POINTS = 45


@dataclass(frozen=True)
class Subject:
    code: str
    name: str
    group: int
    allowed_levels: FrozenSet[str] = frozenset(LEVELS)

    def supports(self, level: str) -> bool:
        return level in self.allowed_levels


@dataclass(frozen=True)
class SubjectResult:
    code: str
    level: str
    grade: int


@dataclass(frozen=True)
class CandidateProfile:
    subjects: Tuple[SubjectResult, ...] = ()
    total_points: int = 0

    def find(self, code: str) -> Optional[SubjectResult]:
        for s in self.subjects:
            if s.code == code:
                return s
        return None


@dataclass(frozen=True)
class Alternative:
    course_code: str
    required_level: str
    min_grade: int

    def describe(self) -> str:
        return f"{self.course_code} {self.required_level}>={self.min_grade}"


@dataclass(frozen=True)
class RequirementGroup:
    alternatives: Tuple[Alternative, ...]
    critical: bool = True
    label: str = ""

    def describe(self) -> str:
        if self.label:
            return self.label
        return " OR ".join(a.describe() for a in self.alternatives)


@dataclass(frozen=True)
class Program:
    id: str
    name: str
    min_ib_points: int = 0
    requirement_groups: Tuple[RequirementGroup, ...] = ()
    university: str = ""
    country: str = ""
    field: str = ""
    degree_level: str = ""


@dataclass(frozen=True)
class RuleResult:
    passed: bool
    explanation: str


@dataclass(frozen=True)
class GroupOutcome:
    group: RequirementGroup
    satisfied: bool
    reason: str
    matched: Optional[Alternative] = None
    grade_surplus: int = 0


@dataclass(frozen=True)
class EligibilityVerdict:
    eligible: bool
    points_margin: int
    failed_critical_groups: Tuple[RequirementGroup, ...] = ()
    # every satisfied group, critical ones included; the scorer uses them all
    satisfied_advisory_groups: Tuple[RequirementGroup, ...] = ()
    outcomes: Tuple[GroupOutcome, ...] = field(default=(), compare=False)

    def outcome_for(self, group: RequirementGroup) -> Optional[GroupOutcome]:
        for o in self.outcomes:
            if o.group is group:
                return o
        return None


@dataclass(frozen=True)
class MatchResult:
    program: Program
    verdict: EligibilityVerdict
    score: float
    reasons: Tuple[str, ...] = ()
