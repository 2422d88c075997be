"""Cut thresholds: optional constants, pT-dependent curves and their combination.

A threshold of ``None`` means the selection is not applied. Every cut family
declares on which side of the threshold a candidate must lie (``Bound``) and,
when a constant and a parametric form are both present, which of the two wins
(``Combine``). The direction is fixed per family, never per configuration.
"""

from dataclasses import dataclass
from enum import Enum
import math


class Bound(Enum):
    LOWER = "lower"  # accept value > threshold
    UPPER = "upper"  # accept value < threshold


class Combine(Enum):
    TIGHTER = "tighter"
    LOOSER = "looser"


@dataclass(frozen=True)
class CutFamily:
    name: str
    bound: Bound
    combine: Combine

    def pick(self, constant: float, parametric: float) -> float:
        # For a lower bound the larger threshold is the tighter one.
        take_max = (self.bound is Bound.LOWER) == (self.combine is Combine.TIGHTER)
        return max(constant, parametric) if take_max else min(constant, parametric)


V0_COSPA = CutFamily("V0CosPA", Bound.LOWER, Combine.TIGHTER)
CASC_COSPA = CutFamily("CascCosPA", Bound.LOWER, Combine.TIGHTER)
CASC_DAUGHTER_DCA = CutFamily("DCACascDaughters", Bound.UPPER, Combine.TIGHTER)
# Inverted logic: candidates are kept below the threshold and the parametric
# form only ever relaxes the constant one.
BACH_BARYON_COSPA = CutFamily("BachBaryonCosPA", Bound.UPPER, Combine.LOOSER)


@dataclass(frozen=True)
class ParametricCut:
    """f(pT) = exp0_const*exp(exp0_slope*pT) + exp1_const*exp(exp1_slope*pT) + const.

    With ``cosine`` set the curve describes an angle and the threshold is its
    cosine.
    """

    exp0_const: float
    exp0_slope: float
    exp1_const: float
    exp1_slope: float
    const: float
    cosine: bool = False

    def evaluate(self, pt: float) -> float:
        value = (
            self.exp0_const * math.exp(self.exp0_slope * pt)
            + self.exp1_const * math.exp(self.exp1_slope * pt)
            + self.const
        )
        return math.cos(value) if self.cosine else value

    @classmethod
    def from_list(cls, values: list[float], cosine: bool = False) -> "ParametricCut":
        if len(values) != 5:
            raise ValueError(f"Parametric cut needs 5 parameters, got {len(values)}.")
        return cls(*(float(v) for v in values), cosine=cosine)


@dataclass(frozen=True)
class VariableCut:
    constant: float | None
    parametric: ParametricCut | None = None
    use_parametric: bool = True

    def effective(self, pt: float, family: CutFamily) -> float | None:
        if self.parametric is None or not self.use_parametric:
            return self.constant
        value = self.parametric.evaluate(pt)
        if self.constant is None:
            return value
        return family.pick(self.constant, value)

    def with_constant(self, constant: float | None, use_parametric: bool | None = None) -> "VariableCut":
        return VariableCut(
            constant=constant,
            parametric=self.parametric,
            use_parametric=self.use_parametric if use_parametric is None else use_parametric,
        )


def above(value: float, threshold: float | None) -> bool:
    return threshold is None or value > threshold


def below(value: float, threshold: float | None) -> bool:
    return threshold is None or value < threshold


def abs_below(value: float, threshold: float | None) -> bool:
    return threshold is None or abs(value) < threshold


def within(value: float, low: float | None, high: float | None) -> bool:
    return above(value, low) and below(value, high)


def active(threshold: float | None, off_above: float | None = None, off_below: float | None = None) -> bool:
    """False for ``None`` and for the legacy "do not apply" sentinels."""
    if threshold is None:
        return False
    if off_above is not None and threshold > off_above:
        return False
    if off_below is not None and threshold < off_below:
        return False
    return True


def momentum_dependent_v0_cospa(v0_total_momentum: float, nominal: float = 0.998, p_threshold: float = 1.5) -> float:
    """2.76 TeV-style V0 CosPA threshold, relaxed below ``p_threshold`` GeV/c."""
    if v0_total_momentum >= p_threshold:
        return nominal
    bend = 0.03  # approximate Xi bending angle
    qt = 0.211  # max Lambda pT in Omega decay
    cpa_threshold = math.cos(math.atan(qt / p_threshold) + bend)
    return (nominal / cpa_threshold) * math.cos(math.atan2(qt, v0_total_momentum) + bend)


def expected_lambda_mass(v0_pt: float, mean: tuple[float, ...]) -> float:
    return mean[0] + mean[1] * math.exp(mean[2] * v0_pt) + mean[3] * math.exp(mean[4] * v0_pt)


def expected_lambda_sigma(v0_pt: float, sigma: tuple[float, ...]) -> float:
    return sigma[0] + sigma[1] * v0_pt + sigma[2] * math.exp(sigma[3] * v0_pt)
