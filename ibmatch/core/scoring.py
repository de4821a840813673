from typing import Any, Dict, List, Optional

from ibmatch.core.models import CandidateProfile, EligibilityVerdict, Program

NOT_RANKED = float("-inf")


def _clamped(value: float, cap: float) -> float:
    if cap <= 0:
        return 0.0
    return max(0.0, min(float(value), cap)) / cap


class RankingScorer:
    """
    Secondary ranking for eligible programs: how comfortably the candidate clears them.

        score = points_weight * clamp(points_margin, 0, points_cap) / points_cap
              + sum over satisfied groups of
                    advisory_bonus                       (advisory groups only)
                  + surplus_weight * clamp(surplus, 0, grade_cap) / grade_cap

    surplus is the achieved grade minus the minimum grade of the best alternative the
    candidate met. Every term is non-decreasing in total points and in each grade.
    Ineligible verdicts score -inf.

    Weights come from policy.json under "scoring"; missing keys use the defaults below.
    """

    def __init__(self, policy_cfg: Optional[Dict[str, Any]] = None):
        cfg = (policy_cfg or {}).get("scoring", {})
        self.points_weight = float(cfg.get("points_weight", 1.0))
        self.points_cap = float(cfg.get("points_cap", 10))
        self.surplus_weight = float(cfg.get("surplus_weight", 0.5))
        self.grade_cap = float(cfg.get("grade_cap", 3))
        self.advisory_bonus = float(cfg.get("advisory_bonus", 0.25))
        for name in ("points_weight", "points_cap", "surplus_weight", "grade_cap", "advisory_bonus"):
            if getattr(self, name) < 0:
                raise ValueError(f"scoring.{name} must not be negative")

    def score(self, profile: CandidateProfile, program: Program, verdict: EligibilityVerdict) -> float:
        if not verdict.eligible:
            return NOT_RANKED

        total = self.points_weight * _clamped(verdict.points_margin, self.points_cap)
        for g in verdict.satisfied_advisory_groups:
            if not g.critical:
                total += self.advisory_bonus
            outcome = verdict.outcome_for(g)
            surplus = outcome.grade_surplus if outcome is not None else 0
            total += self.surplus_weight * _clamped(surplus, self.grade_cap)
        return round(total, 6)

    def reasons(self, program: Program, verdict: EligibilityVerdict) -> List[str]:
        """Why an ineligible program failed; empty for eligible ones."""
        if verdict.eligible:
            return []
        out: List[str] = []
        if verdict.points_margin < 0:
            out.append(
                f"IB points {program.min_ib_points + verdict.points_margin} below required "
                f"{program.min_ib_points} ({-verdict.points_margin} short)"
            )
        for g in verdict.failed_critical_groups:
            outcome = verdict.outcome_for(g)
            out.append(outcome.reason if outcome is not None else f"{g.describe()}: not met")
        return out
