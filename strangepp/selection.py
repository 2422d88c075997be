"""Selection-and-fill engine.

Every configuration of a registry is evaluated once per candidate. The
predicates below apply the selections in a fixed order and stop at the first
failing one; a failure only affects the configuration being evaluated.
"""

import logging
from typing import Any

from .candidates import CascadeCandidate, TrackRecord, V0Candidate, skip_reason
from .configurations import CascadeCuts, ConfigRegistry, Result, V0Cuts
from .cuts import (
    BACH_BARYON_COSPA,
    CASC_COSPA,
    CASC_DAUGHTER_DCA,
    V0_COSPA,
    abs_below,
    above,
    active,
    below,
    expected_lambda_mass,
    expected_lambda_sigma,
    momentum_dependent_v0_cospa,
    within,
)
from .hypotheses import LAMBDA_WINDOW_CENTER, HypothesisStrategy


LOGGER = logging.getLogger("strangepp.selection")

LAMBDA_MASS_MEAN = (1.116, 0.0, 0.0, 0.0, 0.0)
LAMBDA_MASS_SIGMA = (0.002, 0.0, 0.0, 0.0)
TOF_NSIGMA_MAX = 4.0


def _leg(candidate: Any, name: str | None) -> TrackRecord | None:
    return getattr(candidate, name) if name else None


def v0_passes(result: Result, v0: V0Candidate) -> bool:
    cuts: V0Cuts = result.cuts
    st: HypothesisStrategy = result.strategy
    pos, neg = v0.pos, v0.neg
    baryon = _leg(v0, st.baryon_leg)

    if v0.on_fly != cuts.use_on_the_fly:
        return False
    if not (within(neg.eta, cuts.min_eta_tracks, cuts.max_eta_tracks) and within(pos.eta, cuts.min_eta_tracks, cuts.max_eta_tracks)):
        return False
    if not within(st.rapidity(v0), cuts.min_rapidity, cuts.max_rapidity):
        return False

    if not within(v0.radius, cuts.v0_radius, cuts.max_v0_radius):
        return False
    if not (above(neg.dca_to_pv, cuts.dca_neg_to_pv) and above(pos.dca_to_pv, cuts.dca_pos_to_pv)):
        return False
    if not below(v0.dca_daughters, cuts.dca_v0_daughters):
        return False
    if not above(v0.cos_pa, cuts.v0_cospa.effective(v0.pt, V0_COSPA)):
        return False
    if not below(v0.dist_over_tot_mom * st.pdg_mass, cuts.proper_lifetime):
        return False
    if not above(v0.least_crossed_rows, cuts.least_crossed_rows):
        return False
    if not above(v0.least_crossed_rows_over_findable, cuts.least_crossed_rows_over_findable):
        return False

    if baryon is not None and not above(baryon.inner_p, cuts.min_baryon_momentum):
        return False

    if not (abs_below(neg.nsigma(st.neg_species), cuts.tpc_dedx) and abs_below(pos.nsigma(st.pos_species), cuts.tpc_dedx)):
        return False

    if cuts.use_armenteros and st.uses_armenteros and not v0.pt_arm > cuts.armenteros_parameter * abs(v0.alpha):
        return False

    if cuts.use_its_refit and not (pos.has_its_refit and neg.has_its_refit):
        return False
    if active(cuts.max_chi2_per_cluster, off_above=1e3) and not v0.max_chi2_per_cluster < cuts.max_chi2_per_cluster:
        return False
    if active(cuts.min_track_length, off_below=0.0) and not v0.min_track_length > cuts.min_track_length:
        return False

    if cuts.use_276tev_dedx and baryon is not None:
        if not (baryon.inner_pt > 1.0 or abs(baryon.nsigma_proton) < 3.0):
            return False
    return True


def cascade_passes(
    result: Result,
    casc: CascadeCandidate,
    lambda_mass_mean: tuple[float, ...] = LAMBDA_MASS_MEAN,
    lambda_mass_sigma: tuple[float, ...] = LAMBDA_MASS_SIGMA,
) -> bool:
    cuts: CascadeCuts = result.cuts
    st: HypothesisStrategy = result.strategy
    pos, neg, bach = casc.pos, casc.neg, casc.bach
    legs = (pos, neg, bach)

    expected_charge = -st.charge if cuts.swap_bachelor_charge else st.charge
    if casc.charge != expected_charge:
        return False

    if not all(within(t.eta, cuts.min_eta_tracks, cuts.max_eta_tracks) for t in legs):
        return False
    if not within(st.rapidity(casc), cuts.min_rapidity, cuts.max_rapidity):
        return False

    # V0 selections
    if not (above(neg.dca_to_pv, cuts.dca_neg_to_pv) and above(pos.dca_to_pv, cuts.dca_pos_to_pv)):
        return False
    if not below(casc.dca_v0_daughters, cuts.dca_v0_daughters):
        return False
    if not above(casc.v0_cos_pa, cuts.v0_cospa.effective(casc.pt, V0_COSPA)):
        return False
    if not above(casc.v0_radius, cuts.v0_radius):
        return False

    # Cascade selections
    v0_mass = st.v0_mass(casc)
    if not above(casc.dca_v0_to_pv, cuts.dca_v0_to_pv):
        return False
    if not abs_below(v0_mass - LAMBDA_WINDOW_CENTER, cuts.v0_mass):
        return False
    if not above(bach.dca_to_pv, cuts.dca_bach_to_pv):
        return False
    if not below(casc.dca_casc_daughters, cuts.dca_casc_daughters.effective(casc.pt, CASC_DAUGHTER_DCA)):
        return False
    if not above(casc.casc_cos_pa, cuts.casc_cospa.effective(casc.pt, CASC_COSPA)):
        return False
    if not above(casc.casc_radius, cuts.casc_radius):
        return False

    if active(cuts.v0_mass_sigma, off_above=50.0):
        mean = expected_lambda_mass(casc.v0_pt, lambda_mass_mean)
        sigma = expected_lambda_sigma(casc.v0_pt, lambda_mass_sigma)
        # A non-positive width cannot accept any V0 mass.
        if not sigma > 0 or not abs((v0_mass - mean) / sigma) < cuts.v0_mass_sigma:
            return False

    if not below(casc.dist_over_tot_mom * st.pdg_mass, cuts.proper_lifetime):
        return False
    if not above(casc.least_clusters, cuts.least_clusters):
        return False

    species = (st.pos_species, st.neg_species, st.bach_species)
    if not all(abs_below(t.nsigma(sp), cuts.tpc_dedx) for t, sp in zip(legs, species)):
        return False
    if cuts.use_tof and not all(abs(t.tof_nsigma(sp)) < TOF_NSIGMA_MAX for t, sp in zip(legs, species)):
        return False

    if st.competing_mass is not None and cuts.xi_rejection is not None:
        if not abs(st.competing_mass(casc) - st.competing_pdg_mass) > cuts.xi_rejection:
            return False

    if not above(casc.dca_bach_to_baryon, cuts.dca_bach_to_baryon):
        return False
    if not below(casc.bach_baryon_cos_pa, cuts.bach_baryon_cospa.effective(casc.pt, BACH_BARYON_COSPA)):
        return False

    if not above(casc.v0_lifetime, cuts.min_v0_lifetime):
        return False
    if active(cuts.max_v0_lifetime, off_above=1e3) and not casc.v0_lifetime < cuts.max_v0_lifetime:
        return False

    if cuts.use_its_refit and not all(t.has_its_refit for t in legs):
        return False
    if active(cuts.max_chi2_per_cluster, off_above=1e3) and not casc.max_chi2_per_cluster < cuts.max_chi2_per_cluster:
        return False
    if active(cuts.min_track_length, off_below=0.0) and not casc.min_track_length > cuts.min_track_length:
        return False

    if cuts.use_276tev_v0_cospa and not casc.v0_cos_pa > momentum_dependent_v0_cospa(casc.v0_total_momentum):
        return False
    if active(cuts.dca_cascade_to_pv, off_above=999.0) and not casc.casc_dca_to_pv < cuts.dca_cascade_to_pv:
        return False

    weighted = (
        (neg, cuts.dca_neg_to_pv_weighted),
        (pos, cuts.dca_pos_to_pv_weighted),
        (bach, cuts.dca_bach_to_pv_weighted),
    )
    for track, threshold in weighted:
        if active(threshold, off_below=0.0) and not track.weighted_dca() > threshold:
            return False
    return True


class SelectionEngine:
    """Evaluates every configuration of a locked registry for each candidate."""

    def __init__(
        self,
        registry: ConfigRegistry,
        lambda_mass_mean: tuple[float, ...] = LAMBDA_MASS_MEAN,
        lambda_mass_sigma: tuple[float, ...] = LAMBDA_MASS_SIGMA,
    ) -> None:
        self.registry = registry
        self.lambda_mass_mean = tuple(lambda_mass_mean)
        self.lambda_mass_sigma = tuple(lambda_mass_sigma)
        self.n_processed = 0
        self.n_skipped = 0

    def passes(self, result: Result, candidate: Any) -> bool:
        if isinstance(candidate, CascadeCandidate):
            return cascade_passes(result, candidate, self.lambda_mass_mean, self.lambda_mass_sigma)
        return v0_passes(result, candidate)

    def process(self, candidate: Any, centrality: float) -> list[int]:
        """Fill every passing configuration; return the indices that were filled."""
        reason = skip_reason(candidate)
        if reason is not None:
            self.n_skipped += 1
            LOGGER.debug("Skipping %s candidate: %s", self.registry.family, reason)
            return []
        self.n_processed += 1
        filled: list[int] = []
        for index, (result, accumulator) in enumerate(self.registry.entries()):
            if self.passes(result, candidate):
                mass = result.strategy.mass(candidate)
                accumulator.Fill(centrality, candidate.pt, mass)
                filled.append(index)
        return filled
