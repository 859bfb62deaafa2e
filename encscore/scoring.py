"""
Encrypted credit scoring formula.

    income_factor = min(100, income / 500)
    first-time:  prior = 45 + 0.3 * income_factor - 0.1 * debt_ratio
    otherwise:   prior = the account's current score on file
    new_score    = 0.5 * prior + 0.3 * income_factor + 0.2 * (100 - debt_ratio)
    qualified    = new_score >= threshold

Every step runs on ciphertexts through the ConfidentialArithmeticEngine.
Fractional weights are integer scalings with truncation. The debt ratio is
clamped to at most 100 first, so neither subtraction can wrap.

The repayment score is verified with the other inputs but carries no
weight in the formula.
"""

from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

from .ciphertext import CiphertextRef
from .engine import ConfidentialArithmeticEngine


@dataclass(frozen=True)
class ScoreOutcome:
    """Ciphertexts produced by one scoring run."""
    income_factor: CiphertextRef
    prior_score: CiphertextRef
    new_score: CiphertextRef
    qualification: CiphertextRef
    first_submission: bool


@dataclass(frozen=True)
class ScoringPolicy:
    """Constants of the cumulative scoring formula."""
    income_divisor: int = 500
    income_factor_cap: int = 100
    debt_ratio_cap: int = 100
    baseline_offset: int = 45
    baseline_income_weight: Fraction = Fraction(3, 10)
    baseline_debt_weight: Fraction = Fraction(1, 10)
    prior_weight: Fraction = Fraction(1, 2)
    income_weight: Fraction = Fraction(3, 10)
    headroom_weight: Fraction = Fraction(2, 10)

    def evaluate(
        self,
        engine: ConfidentialArithmeticEngine,
        income: CiphertextRef,
        debt_ratio: CiphertextRef,
        threshold: CiphertextRef,
        score_on_file: Optional[CiphertextRef] = None
    ) -> ScoreOutcome:
        """Run the formula; `score_on_file` is None for a first submission."""
        income_factor = engine.clamp_min(
            engine.scalar_multiply(income, 1, self.income_divisor),
            self.income_factor_cap,
        )
        debt = engine.clamp_min(debt_ratio, self.debt_ratio_cap)

        first_submission = score_on_file is None
        if first_submission:
            prior = engine.subtract(
                engine.add(
                    engine.constant(self.baseline_offset),
                    self._weighted(engine, income_factor, self.baseline_income_weight),
                ),
                self._weighted(engine, debt, self.baseline_debt_weight),
            )
        else:
            prior = score_on_file

        headroom = engine.subtract(engine.constant(self.debt_ratio_cap), debt)
        new_score = engine.add(
            engine.add(
                self._weighted(engine, prior, self.prior_weight),
                self._weighted(engine, income_factor, self.income_weight),
            ),
            self._weighted(engine, headroom, self.headroom_weight),
        )

        return ScoreOutcome(
            income_factor=income_factor,
            prior_score=prior,
            new_score=new_score,
            qualification=engine.greater_or_equal(new_score, threshold),
            first_submission=first_submission,
        )

    @staticmethod
    def _weighted(engine: ConfidentialArithmeticEngine, value: CiphertextRef, weight: Fraction) -> CiphertextRef:
        return engine.scalar_multiply(value, weight.numerator, weight.denominator)


DEFAULT_POLICY = ScoringPolicy()
