from typing import List, Optional, Tuple

from ibmatch.core.models import (
    Alternative,
    CandidateProfile,
    GroupOutcome,
    RequirementGroup,
    RuleResult,
)


class AlternativeRule:
    """One (course, level, min grade) option. The level must match exactly."""

    def __init__(self, alternative: Alternative):
        self.alternative = alternative

    def surplus(self, profile: CandidateProfile) -> Optional[int]:
        """Grade above the minimum when satisfied, None otherwise."""
        alt = self.alternative
        s = profile.find(alt.course_code)
        if s is None or s.level != alt.required_level or s.grade < alt.min_grade:
            return None
        return s.grade - alt.min_grade

    def evaluate(self, profile: CandidateProfile) -> RuleResult:
        alt = self.alternative
        s = profile.find(alt.course_code)
        if s is None:
            return RuleResult(False, f"{alt.course_code}: not taken")
        if s.level != alt.required_level:
            return RuleResult(False, f"{alt.course_code}: taken at {s.level}, {alt.required_level} required")
        if s.grade < alt.min_grade:
            gap = alt.min_grade - s.grade
            return RuleResult(
                False,
                f"{alt.course_code} {alt.required_level}: grade {s.grade} < required {alt.min_grade} "
                f"({gap} point{'s' if gap > 1 else ''} below)",
            )
        return RuleResult(True, f"{alt.course_code} {alt.required_level} OK (grade={s.grade}, required={alt.min_grade})")


class OrGroupRule:
    """
    Satisfied when any alternative is. When several are, the one with the largest
    grade surplus is reported (first listed wins a tie).
    """

    def __init__(self, group: RequirementGroup):
        self.group = group
        self.rules = [AlternativeRule(a) for a in group.alternatives]

    def outcome(self, profile: CandidateProfile) -> GroupOutcome:
        best: Optional[Tuple[int, AlternativeRule]] = None
        for r in self.rules:
            surplus = r.surplus(profile)
            if surplus is not None and (best is None or surplus > best[0]):
                best = (surplus, r)

        if best is not None:
            surplus, rule = best
            return GroupOutcome(
                group=self.group,
                satisfied=True,
                reason=rule.evaluate(profile).explanation,
                matched=rule.alternative,
                grade_surplus=surplus,
            )

        exps: List[str] = [r.evaluate(profile).explanation for r in self.rules]
        if len(exps) == 1:
            reason = exps[0]
        else:
            reason = f"none of {self.group.describe()} met: " + " | ".join(exps)
        return GroupOutcome(group=self.group, satisfied=False, reason=reason)


class PointsThresholdRule:
    def __init__(self, min_points: int):
        self.min_points = int(min_points)

    def margin(self, profile: CandidateProfile) -> int:
        return profile.total_points - self.min_points
