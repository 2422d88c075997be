"""Standard and topological-QA configuration sets for the V0 and cascade families.

Cut tables are ordered as the ``*_CUT_NAMES`` lists; each row holds the
Loose, Central and Tight value of one selection.
"""

from dataclasses import replace
import logging
import math

from .configurations import (
    BinningSettings,
    Binning,
    CascadeCuts,
    Result,
    V0Cuts,
    angular_sweep,
    derive_with_override,
    interpolated_values,
    linear_sweep,
    tight_loose_sweep,
)
from .cuts import ParametricCut, VariableCut
from .hypotheses import CASCADE_HYPOTHESES, V0_HYPOTHESES, MassHypothesis


LOGGER = logging.getLogger("strangepp.presets")

K0S, LAM, ALAM = MassHypothesis.K0SHORT, MassHypothesis.LAMBDA, MassHypothesis.ANTILAMBDA
XIM, XIP, OMM, OMP = (
    MassHypothesis.XI_MINUS,
    MassHypothesis.XI_PLUS,
    MassHypothesis.OMEGA_MINUS,
    MassHypothesis.OMEGA_PLUS,
)
LEVELS = ("Loose", "Central", "Tight")

V0_CUT_NAMES = [
    ("DCANegToPV", "dca_neg_to_pv"),
    ("DCAPosToPV", "dca_pos_to_pv"),
    ("DCAV0Daughters", "dca_v0_daughters"),
    ("V0CosPA", "v0_cospa"),
    ("V0Radius", "v0_radius"),
    ("ProperLifetime", "proper_lifetime"),
    ("TrackLength", "min_track_length"),
    ("LeastNbrCrsOvFind", "least_crossed_rows_over_findable"),
    ("TPCdEdx", "tpc_dedx"),
    ("APParameter", "armenteros_parameter"),
    ("V0RadiusMax", "max_v0_radius"),
    ("LeastNbrCrsRows", "least_crossed_rows"),
]
# The first ten selections have Loose/Central/Tight systematic variations.
N_V0_SYST_CUTS = 10

V0_SELECTIONS = {
    K0S: [
        (0.05, 0.10, 0.17),
        (0.05, 0.10, 0.17),
        (0.95, 0.8, 0.7),
        (0.95, 0.95, 0.95),
        (4.50, 5.00, 5.50),
        (25.0, 20.0, 15.0),
        (80.0, 90.0, 100.0),
        (0.7, 0.8, 0.85),
        (4.0, 3.0, 2.5),
        (0.18, 0.20, 0.22),
    ],
    LAM: [
        (0.10, 0.25, 0.40),
        (0.08, 0.10, 0.13),
        (1.0, 0.8, 0.65),
        (0.97, 0.98, 0.99),
        (4.00, 5.00, 6.00),
        (30.0, 25.0, 20.0),
        (80.0, 90.0, 100.0),
        (0.7, 0.8, 0.85),
        (4.0, 3.0, 2.5),
        (0.18, 0.20, 0.22),
    ],
    ALAM: [
        (0.08, 0.10, 0.13),
        (0.10, 0.25, 0.40),
        (1.0, 0.8, 0.65),
        (0.97, 0.98, 0.99),
        (4.00, 5.00, 6.00),
        (30.0, 25.0, 20.0),
        (80.0, 90.0, 100.0),
        (0.7, 0.8, 0.85),
        (4.0, 3.0, 2.5),
        (0.18, 0.20, 0.22),
    ],
}

# V0 pointing-angle curves (angle space), Loose/Central/Tight.
V0_COSPA_CURVES = {
    K0S: (
        (0.20428, -0.73728, 0.09887, -0.02822, -0.05302),
        (0.22692, -1.59317, 0.05994, -0.26997, 0.00907),
        (0.28814, -2.27069, 0.04320, -0.29839, 0.00704),
    ),
    LAM: (
        (0.22775, -1.11579, 0.06266, -0.17086, 0.01489),
        (0.36284, -1.87960, 0.04543, -0.20447, 0.01085),
        (0.54877, -2.72912, 0.03411, -0.26965, 0.00889),
    ),
    ALAM: (
        (0.22667, -0.93618, 0.06857, -0.07015, -0.00707),
        (0.35809, -1.93860, 0.05306, -0.24518, 0.01213),
        (0.54114, -2.71000, 0.03664, -0.28124, 0.00905),
    ),
}

V0_MEAN_LIFETIME = {K0S: 2.6844, LAM: 7.89, ALAM: 7.89}
V0_SWEEP_MASS = {K0S: (0.498, 0.15), LAM: (1.116, 0.1), ALAM: (1.116, 0.1)}
V0_SWEEP_MASS_BINS = 400
SWEEP_STEPS = 12


def _curve(values: tuple[float, ...]) -> ParametricCut:
    return ParametricCut(*values, cosine=True)


def _v0_central_cuts(hypothesis: MassHypothesis) -> V0Cuts:
    table = V0_SELECTIONS[hypothesis]
    central = [row[1] for row in table]
    return V0Cuts(
        dca_neg_to_pv=central[0],
        dca_pos_to_pv=central[1],
        dca_v0_daughters=central[2],
        v0_cospa=VariableCut(central[3], _curve(V0_COSPA_CURVES[hypothesis][1])),
        v0_radius=central[4],
        proper_lifetime=central[5],
        min_track_length=central[6],
        least_crossed_rows_over_findable=central[7],
        tpc_dedx=central[8],
        armenteros_parameter=central[9],
    )


def _v0_tight_loose(hypothesis: MassHypothesis) -> tuple[list[float], list[float]]:
    tight = [0.1, 0.1, 1.0, 0.998, 5.0, 3 * V0_MEAN_LIFETIME[hypothesis], -1.0, -0.01, 8.0, 0.2, 100.0, 70.0]
    loose = [row[1] for row in V0_SELECTIONS[hypothesis]] + [200.0, -1.0]
    return tight, loose


def _v0_276_cuts(cuts: V0Cuts, tight: list[float]) -> V0Cuts:
    return replace(
        cuts,
        dca_neg_to_pv=tight[0],
        dca_pos_to_pv=tight[1],
        dca_v0_daughters=tight[2],
        v0_cospa=VariableCut(tight[3], cuts.v0_cospa.parametric, use_parametric=False),
        v0_radius=tight[4],
        max_v0_radius=tight[10],
        proper_lifetime=tight[5],
        least_crossed_rows=tight[11],
        min_track_length=tight[6],
        least_crossed_rows_over_findable=tight[7],
        tpc_dedx=1e6,
        use_276tev_dedx=True,
        armenteros_parameter=tight[9],
    )


def _differs(tight: float, loose: float) -> bool:
    """Relative difference against the signed loose value.

    A negative loose value (a disabled selection) never differs, so no sweep
    is built for it.
    """
    if loose == 0:
        return tight != 0
    return abs(tight - loose) / loose >= 0.01


def _v0_cospa_towards_tight(curve: ParametricCut, constant: float, tight_cos: float, f: float) -> VariableCut:
    return VariableCut(
        constant,
        ParametricCut(
            curve.exp0_const * (1 - f),
            curve.exp0_slope,
            curve.exp1_const * (1 - f),
            curve.exp1_slope,
            curve.const + f * (math.acos(tight_cos) - curve.const),
            cosine=True,
        ),
    )


def _v0_cospa_towards_loose(curve: ParametricCut, constant: float, tight_cos: float, f: float) -> VariableCut:
    return VariableCut(
        constant,
        ParametricCut(
            curve.exp0_const * f,
            curve.exp0_slope,
            curve.exp1_const * f,
            curve.exp1_slope,
            math.acos(tight_cos) + f * (curve.const - math.acos(tight_cos)),
            cosine=True,
        ),
    )


def _v0_cut_sweep(base: Result, prefix: str, hypothesis: MassHypothesis, towards_tight: bool) -> list[Result]:
    """One 12-step sweep per selection that differs between the loose and tight sets."""
    tight, loose = _v0_tight_loose(hypothesis)
    start, end = (loose, tight) if towards_tight else (tight, loose)
    curve = _curve(V0_COSPA_CURVES[hypothesis][1])
    build = _v0_cospa_towards_tight if towards_tight else _v0_cospa_towards_loose
    out: list[Result] = []
    for i_cut, (label, attr) in enumerate(V0_CUT_NAMES):
        if attr != "v0_cospa":
            if _differs(tight[i_cut], loose[i_cut]):
                out.extend(tight_loose_sweep(base, attr, start[i_cut], end[i_cut], f"{prefix}_{label}", SWEEP_STEPS))
            continue
        # The pointing angle is always swept: its parametric form moves even when the constant does not.
        values = interpolated_values(start[i_cut], end[i_cut], SWEEP_STEPS)
        for k, value in enumerate(values, start=1):
            f = k / float(SWEEP_STEPS)
            out.append(derive_with_override(base, f"{prefix}_{label}_{k}", v0_cospa=build(curve, value, tight[i_cut], f)))
    return out


def standard_v0(binning: BinningSettings, use_full: bool = False) -> list[Result]:
    """Central V0 results and their systematic and tight/loose variations."""
    centrals: dict[MassHypothesis, Result] = {}
    out: list[Result] = []
    for hyp in V0_HYPOTHESES:
        centrals[hyp] = Result(f"{hyp.value}_Central", hyp, _v0_central_cuts(hyp), binning.for_hypothesis(hyp))
        out.append(centrals[hyp])

    if use_full:
        for hyp in V0_HYPOTHESES:
            center, half_width = binning.window(hyp)
            out.append(derive_with_override(centrals[hyp], f"{hyp.value}_Central_Full", binning=Binning.full(center, half_width)))

    for hyp in V0_HYPOTHESES:
        for ir in range(12):
            low = (ir - 6) / 10.0
            high = (ir - 5) / 10.0
            out.append(derive_with_override(centrals[hyp], f"{hyp.value}_RapiditySweep_{low:.1f}_{high:.1f}", min_rapidity=low, max_rapidity=high))

    for hyp in V0_HYPOTHESES:
        out.append(derive_with_override(centrals[hyp], f"{hyp.value}_NCrossedRowsCut", least_crossed_rows=70.0, min_track_length=-1.0))
    for hyp in V0_HYPOTHESES:
        out.append(derive_with_override(centrals[hyp], f"{hyp.value}_NoAP", armenteros_parameter=0.0))

    for hyp in V0_HYPOTHESES:
        tight, _ = _v0_tight_loose(hyp)
        out.append(derive_with_override(centrals[hyp], f"{hyp.value}_276Cuts", mutator=lambda c, t=tight: _v0_276_cuts(c, t)))

    for_sweep: dict[MassHypothesis, Result] = {}
    for hyp in V0_HYPOTHESES:
        center, half_width = V0_SWEEP_MASS[hyp]
        sweep_binning = Binning.around(binning.sweep_centrality_edges, binning.v0_pt_edges, center, half_width, V0_SWEEP_MASS_BINS)
        for_sweep[hyp] = Result(f"{hyp.value}_Central_ForSweep", hyp, _v0_central_cuts(hyp), sweep_binning)
        out.append(for_sweep[hyp])

    for hyp in V0_HYPOTHESES:
        out.extend(_v0_cut_sweep(for_sweep[hyp], f"{hyp.value}_Central", hyp, towards_tight=True))

    tight_for_sweep: dict[MassHypothesis, Result] = {}
    for hyp in V0_HYPOTHESES:
        tight, _ = _v0_tight_loose(hyp)
        tight_for_sweep[hyp] = derive_with_override(for_sweep[hyp], f"{hyp.value}_276Cuts_ForSweep", mutator=lambda c, t=tight: _v0_276_cuts(c, t))
        out.append(tight_for_sweep[hyp])

    for hyp in V0_HYPOTHESES:
        out.extend(_v0_cut_sweep(tight_for_sweep[hyp], f"{hyp.value}_276Cuts", hyp, towards_tight=False))

    for hyp in V0_HYPOTHESES:
        for i_cut, (label, attr) in enumerate(V0_CUT_NAMES[:N_V0_SYST_CUTS]):
            for level_index in (0, 2):
                value = V0_SELECTIONS[hyp][i_cut][level_index]
                name = f"{hyp.value}_{label}_{LEVELS[level_index]}"
                if attr == "v0_cospa":
                    cut = VariableCut(value, _curve(V0_COSPA_CURVES[hyp][level_index]))
                    out.append(derive_with_override(centrals[hyp], name, v0_cospa=cut))
                else:
                    out.append(derive_with_override(centrals[hyp], name, **{attr: value}))

    LOGGER.info("Built %d standard V0 configurations", len(out))
    return out


def topological_qa_v0(binning: BinningSettings, steps: int) -> list[Result]:
    lifetime = {K0S: 20.0, LAM: 30.0, ALAM: 30.0}
    window = {K0S: 0.075, LAM: 0.050, ALAM: 0.050}
    centrals: dict[MassHypothesis, Result] = {}
    for hyp in V0_HYPOTHESES:
        cuts = V0Cuts(
            dca_neg_to_pv=0.05,
            dca_pos_to_pv=0.05,
            dca_v0_daughters=1.2,
            v0_cospa=VariableCut(0.98),
            v0_radius=0.9,
            proper_lifetime=lifetime[hyp],
            least_crossed_rows=70.0,
            least_crossed_rows_over_findable=0.8,
            tpc_dedx=4.0,
        )
        qa_binning = binning.for_hypothesis(hyp, binning.qa_centrality_edges, mass_bins=100, half_width=window[hyp])
        centrals[hyp] = Result(f"{hyp.value}_Central", hyp, cuts, qa_binning)

    out = list(centrals.values())
    linear = [
        ("dca_neg_to_pv", "DCANegToPVSweep", 0.0, 20.0),
        ("dca_pos_to_pv", "DCAPosToPVSweep", 0.0, 20.0),
        ("dca_v0_daughters", "DCAV0DaughtersSweep", 0.0, 1.2),
    ]
    for attr, label, low, high in linear:
        for hyp in V0_HYPOTHESES:
            out.extend(linear_sweep(centrals[hyp], attr, low, high, steps, f"{hyp.value}_{label}"))
    for hyp in V0_HYPOTHESES:
        out.extend(angular_sweep(centrals[hyp], "v0_cospa", 0.98, steps, f"{hyp.value}_V0CosPASweep"))
    for hyp in V0_HYPOTHESES:
        out.extend(linear_sweep(centrals[hyp], "v0_radius", 2.0, 20.0, steps, f"{hyp.value}_V0RadiusSweep"))
    LOGGER.info("Built %d topological QA V0 configurations", len(out))
    return out


CASCADE_CUT_NAMES = [
    ("DCANegToPV", "dca_neg_to_pv"),
    ("DCAPosToPV", "dca_pos_to_pv"),
    ("DCAV0Daughters", "dca_v0_daughters"),
    ("V0Radius", "v0_radius"),
    ("DCAV0ToPV", "dca_v0_to_pv"),
    ("V0Mass", "v0_mass"),
    ("DCABachToPV", "dca_bach_to_pv"),
    ("DCACascDaughters", "dca_casc_daughters"),
    ("CascRadius", "casc_radius"),
    ("ProperLifetime", "proper_lifetime"),
    ("ProperLifetimeV0", "max_v0_lifetime"),
    ("MinLength", "min_track_length"),
    ("TPCdEdx", "tpc_dedx"),
    ("Competing", "xi_rejection"),
    ("DCA3DCascToPV", "dca_cascade_to_pv"),
]

_XI_SELECTIONS = [
    (0.10, 0.20, 0.30),
    (0.10, 0.20, 0.30),
    (1.2, 1.0, 0.8),
    (2.00, 3.00, 4.0),
    (0.05, 0.1, 0.15),
    (0.006, 0.005, 0.004),
    (0.05, 0.10, 0.15),
    (1.20, 1.0, 0.8),
    (0.8, 1.2, 3.00),
    (17.5, 15.0, 12.5),
    (40.0, 30.0, 20.0),
    (80.0, 90.0, 100.0),
    (5.0, 4.0, 3.0),
    (0.0, 0.008, 0.010),
    (1.2, 0.8, 0.6),
]
_OMEGA_SELECTIONS = list(_XI_SELECTIONS)
_OMEGA_SELECTIONS[7] = (1.00, 0.6, 0.5)
_OMEGA_SELECTIONS[8] = (0.6, 1.0, 2.50)
_OMEGA_SELECTIONS[9] = (14.0, 12.0, 10.0)
_OMEGA_SELECTIONS[14] = (0.8, 0.6, 0.5)
CASCADE_SELECTIONS = {XIM: _XI_SELECTIONS, XIP: _XI_SELECTIONS, OMM: _OMEGA_SELECTIONS, OMP: _OMEGA_SELECTIONS}

CASC_V0_COSPA_CURVE = (math.exp(10.853), -25.0322, math.exp(-0.843948), -0.890794, 0.057553)
CASC_COSPA_CURVE_XI = (math.exp(4.86664), -10.786, math.exp(-1.33411), -0.729825, 0.0695724)
CASC_COSPA_CURVE_OMEGA = (math.exp(12.8752), -21.522, math.exp(-1.49906), -0.813472, 0.0480962)
BB_COSPA_CURVE = (math.exp(-2.29048), -20.2016, math.exp(-2.9581), -0.649153, 0.00526455)
CASC_DCA_DAU_CURVE = (math.exp(0.0470076), -0.917006, 0.0, 1.0, 0.5)

# Manually re-parametrised pointing-angle variations.
CASC_V0_COSPA_VARIATIONS = {
    "Loose": (math.exp(-1.77429), -0.692453, math.exp(-2.01938), -0.201574, 0.0776465),
    "Tight": (math.exp(-1.21892), -41.8521, math.exp(-1.278), -0.894064, 0.0303932),
    "VeryTight": (math.exp(12.8077), -21.2944, math.exp(-1.53357), -0.920017, 0.0262315),
}
CASC_COSPA_VARIATIONS_XI = {
    "Loose": (math.exp(-1.77429), -0.692453, math.exp(-2.01938), -0.201574, 0.0776465),
    "Tight": CASC_COSPA_CURVE_OMEGA,
    "VeryTight": (math.exp(12.801), -21.6157, math.exp(-1.66297), -0.889246, 0.0346838),
}
CASC_COSPA_VARIATIONS_OMEGA = {
    "Loose": CASC_COSPA_CURVE_XI,
    "Tight": (math.exp(12.801), -21.6157, math.exp(-1.66297), -0.889246, 0.0346838),
}
BB_COSPA_VARIATIONS = {
    "Loose": (math.cos(0.03), (math.exp(-2.8798), -20.9876, math.exp(-3.10847), -0.73045, 0.00235147)),
    "Tight": (math.cos(0.05), (math.exp(12.4606), -20.578, math.exp(-2.41442), -0.709588, 0.01079)),
}


def _is_omega(hypothesis: MassHypothesis) -> bool:
    return hypothesis in (OMM, OMP)


def _dca_casc_dau(constant: float, scale: float = 1.0) -> VariableCut:
    exp0_const, exp0_slope, exp1_const, exp1_slope, const = CASC_DCA_DAU_CURVE
    return VariableCut(constant, ParametricCut(scale * exp0_const, exp0_slope, exp1_const, exp1_slope, scale * const))


def _cascade_central_cuts(hypothesis: MassHypothesis) -> CascadeCuts:
    central = [row[1] for row in CASCADE_SELECTIONS[hypothesis]]
    casc_curve = CASC_COSPA_CURVE_OMEGA if _is_omega(hypothesis) else CASC_COSPA_CURVE_XI
    return CascadeCuts(
        dca_neg_to_pv=central[0],
        dca_pos_to_pv=central[1],
        dca_v0_daughters=central[2],
        v0_radius=central[3],
        dca_v0_to_pv=central[4],
        v0_mass=central[5],
        dca_bach_to_pv=central[6],
        dca_casc_daughters=_dca_casc_dau(central[7]),
        casc_radius=central[8],
        proper_lifetime=central[9],
        max_v0_lifetime=central[10],
        min_track_length=central[11],
        tpc_dedx=central[12],
        xi_rejection=central[13],
        dca_cascade_to_pv=central[14],
        v0_cospa=VariableCut(0.95, _curve(CASC_V0_COSPA_CURVE)),
        casc_cospa=VariableCut(0.95, _curve(casc_curve)),
        bach_baryon_cospa=VariableCut(math.cos(0.04), _curve(BB_COSPA_CURVE)),
    )


def _vertexer_level_cuts(hypothesis: MassHypothesis, lifetime: float, bb_cospa: VariableCut, v0_cospa: VariableCut, casc_cospa: VariableCut, dca_bach: float, track_length: float | None) -> CascadeCuts:
    return CascadeCuts(
        dca_neg_to_pv=0.2,
        dca_pos_to_pv=0.2,
        dca_v0_daughters=1.0,
        v0_cospa=v0_cospa,
        v0_radius=3.0,
        dca_v0_to_pv=0.1,
        v0_mass=0.006,
        dca_bach_to_pv=dca_bach,
        dca_casc_daughters=VariableCut(1.0),
        casc_radius=1.0 if _is_omega(hypothesis) else 1.2,
        casc_cospa=casc_cospa,
        proper_lifetime=lifetime,
        min_track_length=track_length,
        tpc_dedx=4.0,
        xi_rejection=0.008,
        bach_baryon_cospa=bb_cospa,
    )


CASCADE_LIFETIME = {XIM: 15.0, XIP: 15.0, OMM: 12.0, OMP: 12.0}
CASCADE_QA_MASS = {XIM: 1.322, XIP: 1.322, OMM: 1.672, OMP: 1.672}


def standard_cascade(binning: BinningSettings, use_full: bool = False) -> list[Result]:
    """Central cascade results, rapidity slices and Loose/Tight systematic variations."""
    centrals: dict[MassHypothesis, Result] = {}
    out: list[Result] = []
    for hyp in CASCADE_HYPOTHESES:
        centrals[hyp] = Result(f"{hyp.value}_Central", hyp, _cascade_central_cuts(hyp), binning.for_hypothesis(hyp))
        out.append(centrals[hyp])

    if use_full:
        for hyp in CASCADE_HYPOTHESES:
            center, half_width = binning.window(hyp)
            out.append(derive_with_override(centrals[hyp], f"{hyp.value}_Central_Full", binning=Binning.full(center, half_width)))

    for hyp in CASCADE_HYPOTHESES:
        out.append(derive_with_override(centrals[hyp], f"{hyp.value}_Central_y03", min_rapidity=-0.3, max_rapidity=0.3))
    for hyp in CASCADE_HYPOTHESES:
        for ir in range(12):
            low = (ir - 6) / 10.0
            high = (ir - 5) / 10.0
            out.append(derive_with_override(centrals[hyp], f"{hyp.value}_DefaultRapiditySweep_{low:f}_{high:f}", min_rapidity=low, max_rapidity=high))

    for hyp in CASCADE_HYPOTHESES:
        for i_cut, (label, attr) in enumerate(CASCADE_CUT_NAMES):
            for level_index, scale in ((0, 1.2), (2, 0.8)):
                value = CASCADE_SELECTIONS[hyp][i_cut][level_index]
                name = f"{hyp.value}_{label}_{LEVELS[level_index]}"
                if attr == "dca_casc_daughters":
                    out.append(derive_with_override(centrals[hyp], name, dca_casc_daughters=_dca_casc_dau(value, scale)))
                else:
                    out.append(derive_with_override(centrals[hyp], name, **{attr: value}))

    for hyp in CASCADE_HYPOTHESES:
        base = centrals[hyp]
        for level, curve in CASC_V0_COSPA_VARIATIONS.items():
            out.append(derive_with_override(base, f"{hyp.value}_V0CosPA_{level}", v0_cospa=VariableCut(0.95, _curve(curve))))
        casc_variations = CASC_COSPA_VARIATIONS_OMEGA if _is_omega(hyp) else CASC_COSPA_VARIATIONS_XI
        for level, curve in casc_variations.items():
            out.append(derive_with_override(base, f"{hyp.value}_CascCosPA_{level}", casc_cospa=VariableCut(0.95, _curve(curve))))
        if _is_omega(hyp):
            out.append(derive_with_override(base, f"{hyp.value}_CascCosPA_VeryTight", casc_cospa=0.9992))
        for level, (constant, curve) in BB_COSPA_VARIATIONS.items():
            out.append(derive_with_override(base, f"{hyp.value}_BBCosPA_{level}", bach_baryon_cospa=VariableCut(constant, _curve(curve))))

    for hyp in CASCADE_HYPOTHESES:
        center = CASCADE_QA_MASS[hyp]
        cuts = _vertexer_level_cuts(
            hyp,
            CASCADE_LIFETIME[hyp],
            bb_cospa=VariableCut(math.cos(0.006)),
            v0_cospa=VariableCut(0.98),
            casc_cospa=VariableCut(0.98),
            dca_bach=0.03,
            track_length=90.0,
        )
        vertexer_binning = Binning.around(binning.cascade_centrality_edges, binning.cascade_pt_edges, center, 0.050, 100)
        out.append(Result(f"{hyp.value}_VertexerLevel", hyp, cuts, vertexer_binning))

    LOGGER.info("Built %d standard cascade configurations", len(out))
    return out


CASCADE_276_PT_EDGES = (
    0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0, 1.1, 1.2, 1.3, 1.4, 1.5, 1.6, 1.7, 1.8, 1.9, 2.0,
    2.1, 2.2, 2.3, 2.4, 2.5, 2.6, 2.7, 2.8, 3.0, 3.2, 3.4, 3.6, 3.8, 4.0, 4.2,
    4.4, 4.6, 4.8, 5.0, 5.5, 6.0, 6.5, 7.0, 8.0, 9.0, 10.0, 11.0, 12.0,
)


def _cascade_276_cuts(hypothesis: MassHypothesis) -> CascadeCuts:
    omega = _is_omega(hypothesis)
    return CascadeCuts(
        dca_neg_to_pv=0.1,
        dca_pos_to_pv=0.1,
        dca_v0_daughters=0.8,
        v0_cospa=VariableCut(0.95),
        use_276tev_v0_cospa=True,
        v0_radius=3.0,
        dca_v0_to_pv=0.1,
        v0_mass=0.005,
        dca_bach_to_pv=0.03,
        dca_casc_daughters=VariableCut(0.3),
        casc_radius=1.0 if omega else 1.5,
        casc_cospa=VariableCut(0.9992),
        proper_lifetime=8.0 if omega else 15.0,
        least_clusters=70.0,
        tpc_dedx=4.0,
        xi_rejection=0.008,
        dca_bach_to_baryon=0.0,
    )


def cascade_276tev(binning: BinningSettings) -> list[Result]:
    """Cascade selections of the 2.76 TeV analysis, with their rapidity checks."""
    centrals: dict[MassHypothesis, Result] = {}
    for hyp in CASCADE_HYPOTHESES:
        center, half_width = binning.window(hyp)
        cuts_binning = Binning.around(binning.cascade_centrality_edges, CASCADE_276_PT_EDGES, center, half_width, binning.mass_bins)
        centrals[hyp] = Result(f"{hyp.value}_276TeV", hyp, _cascade_276_cuts(hyp), cuts_binning)

    out = list(centrals.values())
    for hyp in CASCADE_HYPOTHESES:
        out.append(derive_with_override(centrals[hyp], f"{hyp.value}_276TeV_y03", min_rapidity=-0.3, max_rapidity=0.3))
    for hyp in CASCADE_HYPOTHESES:
        for ir in range(12):
            low = (ir - 6) / 10.0
            high = (ir - 5) / 10.0
            out.append(derive_with_override(centrals[hyp], f"{hyp.value}_276TeVRapiditySweep_{low:f}_{high:f}", min_rapidity=low, max_rapidity=high))
    LOGGER.info("Built %d 2.76 TeV cascade configurations", len(out))
    return out


def topological_qa_cascade(binning: BinningSettings, steps: int) -> list[Result]:
    centrals: dict[MassHypothesis, Result] = {}
    for hyp in CASCADE_HYPOTHESES:
        cuts = _vertexer_level_cuts(
            hyp,
            CASCADE_LIFETIME[hyp],
            bb_cospa=VariableCut(math.cos(0.04), _curve(BB_COSPA_CURVE)),
            v0_cospa=VariableCut(0.95, _curve(CASC_V0_COSPA_CURVE)),
            casc_cospa=VariableCut(0.95, _curve(CASC_COSPA_CURVE_XI)),
            dca_bach=0.1,
            track_length=None,
        )
        cuts = replace(cuts, least_clusters=70.0)
        qa_binning = Binning.around(binning.qa_centrality_edges, binning.cascade_pt_edges, CASCADE_QA_MASS[hyp], 0.050, 100)
        centrals[hyp] = Result(f"{hyp.value}_VertexerLevel", hyp, cuts, qa_binning)

    out = list(centrals.values())
    linear = [
        ("dca_neg_to_pv", "DCANegToPVSweep", 0.0, 1.5),
        ("dca_pos_to_pv", "DCAPosToPVSweep", 0.0, 1.5),
        ("dca_v0_daughters", "DCAV0DaughtersSweep", 0.0, 1.4),
    ]
    for attr, label, low, high in linear:
        for hyp in CASCADE_HYPOTHESES:
            out.extend(linear_sweep(centrals[hyp], attr, low, high, steps, f"{hyp.value}_{label}"))
    for hyp in CASCADE_HYPOTHESES:
        out.extend(angular_sweep(centrals[hyp], "v0_cospa", 0.95, steps, f"{hyp.value}_V0CosPASweep"))
    linear = [
        ("v0_radius", "V0RadiusSweep", 0.0, 20.0),
        ("dca_v0_to_pv", "DCAV0ToPVSweep", 0.0, 0.5),
        ("dca_bach_to_pv", "DCABachToPVSweep", 0.0, 0.5),
        ("dca_casc_daughters", "DCACascDaughtersSweep", 0.0, 1.4),
        ("casc_radius", "CascRadiusSweep", 0.5, 7.0),
    ]
    for attr, label, low, high in linear:
        for hyp in CASCADE_HYPOTHESES:
            out.extend(linear_sweep(centrals[hyp], attr, low, high, steps, f"{hyp.value}_{label}"))
    for hyp in CASCADE_HYPOTHESES:
        out.extend(angular_sweep(centrals[hyp], "casc_cospa", 0.95, steps, f"{hyp.value}_CascCosPASweep"))
    for hyp in CASCADE_HYPOTHESES:
        out.extend(angular_sweep(centrals[hyp], "bach_baryon_cospa", math.cos(0.1), steps, f"{hyp.value}_BBCosPASweep"))
    for hyp in CASCADE_HYPOTHESES:
        out.extend(linear_sweep(centrals[hyp], "proper_lifetime", 5.0, 20.0, 15, f"{hyp.value}_CascLifetimeSweep"))
    for hyp in CASCADE_HYPOTHESES:
        out.extend(linear_sweep(centrals[hyp], "max_v0_lifetime", 8.0, 40.0, 32, f"{hyp.value}_MaxV0LifetimeSweep"))
    LOGGER.info("Built %d topological QA cascade configurations", len(out))
    return out


PRESETS = {
    ("v0", "standard"): lambda binning, steps, use_full: standard_v0(binning, use_full),
    ("v0", "topological_qa"): lambda binning, steps, use_full: topological_qa_v0(binning, steps),
    ("cascade", "standard"): lambda binning, steps, use_full: standard_cascade(binning, use_full),
    ("cascade", "topological_qa"): lambda binning, steps, use_full: topological_qa_cascade(binning, steps),
    ("cascade", "276tev"): lambda binning, steps, use_full: cascade_276tev(binning),
}


def available_presets(family: str) -> list[str]:
    return sorted({p for f, p in PRESETS if f == family} | {"none"})


def build_preset(family: str, preset: str, binning: BinningSettings, sweep_steps: int = 20, use_full: bool = False) -> list[Result]:
    key = str(preset).strip().lower()
    if key == "none":
        return []
    builder = PRESETS.get((family, key))
    if builder is None:
        raise ValueError(f"Unsupported {family} preset '{preset}'. Available: {', '.join(available_presets(family))}.")
    return builder(binning, int(sweep_steps), bool(use_full))
