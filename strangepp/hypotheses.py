from dataclasses import dataclass
from enum import Enum
from operator import attrgetter
from typing import Any, Callable


LAMBDA_PDG_MASS = 1.115683
XI_PDG_MASS = 1.32171
OMEGA_PDG_MASS = 1.67245
K0SHORT_PDG_MASS = 0.497
# V0-mass window centre used by the cascade selection.
LAMBDA_WINDOW_CENTER = 1.116


class MassHypothesis(Enum):
    K0SHORT = "K0Short"
    LAMBDA = "Lambda"
    ANTILAMBDA = "AntiLambda"
    XI_MINUS = "XiMinus"
    XI_PLUS = "XiPlus"
    OMEGA_MINUS = "OmegaMinus"
    OMEGA_PLUS = "OmegaPlus"

    @classmethod
    def from_name(cls, name: str) -> "MassHypothesis":
        key = str(name).strip().lower()
        for member in cls:
            if member.value.lower() == key or member.name.lower() == key:
                return member
        raise ValueError(f"Unknown mass hypothesis '{name}'. Available: {', '.join(m.value for m in cls)}.")


@dataclass(frozen=True)
class HypothesisStrategy:
    """Which precomputed candidate fields play which role for one hypothesis.

    Daughter PID roles name the species expected on each leg; the engine reads
    the matching ``nsigma_<species>`` field of that leg's track record.
    """

    hypothesis: MassHypothesis
    family: str
    pdg_mass: float
    mass: Callable[[Any], float]
    rapidity: Callable[[Any], float]
    pos_species: str
    neg_species: str
    bach_species: str | None = None
    baryon_leg: str | None = None
    charge: int = 0
    v0_mass: Callable[[Any], float] | None = None
    uses_armenteros: bool = False
    competing_mass: Callable[[Any], float] | None = None
    competing_pdg_mass: float | None = None

    @property
    def is_baryon(self) -> bool:
        return self.baryon_leg is not None


STRATEGIES: dict[MassHypothesis, HypothesisStrategy] = {
    MassHypothesis.K0SHORT: HypothesisStrategy(
        hypothesis=MassHypothesis.K0SHORT,
        family="v0",
        pdg_mass=K0SHORT_PDG_MASS,
        mass=attrgetter("mass_k0short"),
        rapidity=attrgetter("rap_k0short"),
        pos_species="pion",
        neg_species="pion",
        uses_armenteros=True,
    ),
    MassHypothesis.LAMBDA: HypothesisStrategy(
        hypothesis=MassHypothesis.LAMBDA,
        family="v0",
        pdg_mass=LAMBDA_PDG_MASS,
        mass=attrgetter("mass_lambda"),
        rapidity=attrgetter("rap_lambda"),
        pos_species="proton",
        neg_species="pion",
        baryon_leg="pos",
    ),
    MassHypothesis.ANTILAMBDA: HypothesisStrategy(
        hypothesis=MassHypothesis.ANTILAMBDA,
        family="v0",
        pdg_mass=LAMBDA_PDG_MASS,
        mass=attrgetter("mass_antilambda"),
        rapidity=attrgetter("rap_lambda"),
        pos_species="pion",
        neg_species="proton",
        baryon_leg="neg",
    ),
    MassHypothesis.XI_MINUS: HypothesisStrategy(
        hypothesis=MassHypothesis.XI_MINUS,
        family="cascade",
        pdg_mass=XI_PDG_MASS,
        mass=attrgetter("mass_xi"),
        rapidity=attrgetter("rap_xi"),
        pos_species="proton",
        neg_species="pion",
        bach_species="pion",
        baryon_leg="pos",
        charge=-1,
        v0_mass=attrgetter("v0_mass_lambda"),
    ),
    MassHypothesis.XI_PLUS: HypothesisStrategy(
        hypothesis=MassHypothesis.XI_PLUS,
        family="cascade",
        pdg_mass=XI_PDG_MASS,
        mass=attrgetter("mass_xi"),
        rapidity=attrgetter("rap_xi"),
        pos_species="pion",
        neg_species="proton",
        bach_species="pion",
        baryon_leg="neg",
        charge=+1,
        v0_mass=attrgetter("v0_mass_antilambda"),
    ),
    MassHypothesis.OMEGA_MINUS: HypothesisStrategy(
        hypothesis=MassHypothesis.OMEGA_MINUS,
        family="cascade",
        pdg_mass=OMEGA_PDG_MASS,
        mass=attrgetter("mass_omega"),
        rapidity=attrgetter("rap_omega"),
        pos_species="proton",
        neg_species="pion",
        bach_species="kaon",
        baryon_leg="pos",
        charge=-1,
        v0_mass=attrgetter("v0_mass_lambda"),
        competing_mass=attrgetter("mass_xi"),
        competing_pdg_mass=XI_PDG_MASS,
    ),
    MassHypothesis.OMEGA_PLUS: HypothesisStrategy(
        hypothesis=MassHypothesis.OMEGA_PLUS,
        family="cascade",
        pdg_mass=OMEGA_PDG_MASS,
        mass=attrgetter("mass_omega"),
        rapidity=attrgetter("rap_omega"),
        pos_species="pion",
        neg_species="proton",
        bach_species="kaon",
        baryon_leg="neg",
        charge=+1,
        v0_mass=attrgetter("v0_mass_antilambda"),
        competing_mass=attrgetter("mass_xi"),
        competing_pdg_mass=XI_PDG_MASS,
    ),
}

V0_HYPOTHESES = [h for h, st in STRATEGIES.items() if st.family == "v0"]
CASCADE_HYPOTHESES = [h for h, st in STRATEGIES.items() if st.family == "cascade"]


def strategy_for(hypothesis: MassHypothesis) -> HypothesisStrategy:
    return STRATEGIES[hypothesis]
