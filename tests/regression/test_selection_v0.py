from dataclasses import replace
import unittest

from strangepp import candidates as cand
from strangepp.configurations import Binning, ConfigRegistry, Result, V0Cuts
from strangepp.cuts import VariableCut
from strangepp.hypotheses import MassHypothesis
from strangepp.selection import SelectionEngine, v0_passes


class RecordingAccumulator:
    def __init__(self, result: Result) -> None:
        self.name = result.name
        self.fills: list[tuple[float, float, float]] = []

    def Fill(self, x: float, y: float, z: float) -> None:
        self.fills.append((x, y, z))

    def Reset(self) -> None:
        self.fills.clear()


BINNING = Binning((0.0, 10.0, 100.0), (0.0, 1.0, 2.0, 5.0), 10, 0.4, 1.3)


def track(index: int, charge: int, **changes) -> cand.TrackRecord:
    values = dict(
        index=index,
        charge=charge,
        eta=0.1,
        status=cand.ITS_REFIT | cand.TPC_REFIT,
        crossed_rows=120.0,
        findable_clusters=130.0,
        tpc_clusters=120,
        tpc_chi2=240.0,
        length=150.0,
        inner_p=1.2,
        inner_pt=1.1,
        dca_to_pv=0.5,
        dca_sigma_x2=0.01,
        dca_sigma_y2=0.01,
        nsigma_pion=0.5,
        nsigma_proton=0.5,
        nsigma_kaon=0.5,
    )
    values.update(changes)
    return cand.TrackRecord(**values)


def lambda_candidate(**changes) -> cand.V0Candidate:
    values = dict(
        pt=1.5,
        eta=0.2,
        on_fly=False,
        mass_k0short=0.6,
        mass_lambda=1.1157,
        mass_antilambda=1.2,
        rap_k0short=0.1,
        rap_lambda=0.1,
        radius=5.0,
        dca_daughters=0.3,
        dca_to_pv=0.05,
        cos_pa=0.999,
        distance=10.0,
        total_momentum=2.0,
        alpha=0.7,
        pt_arm=0.1,
        pos=track(1, +1),
        neg=track(2, -1, nsigma_proton=10.0),
    )
    values.update(changes)
    return cand.V0Candidate(**values)


BASE_CUTS = V0Cuts(
    dca_neg_to_pv=0.1,
    dca_pos_to_pv=0.1,
    dca_v0_daughters=1.0,
    v0_cospa=VariableCut(0.98),
    v0_radius=0.5,
    max_v0_radius=100.0,
    proper_lifetime=30.0,
    least_crossed_rows=70.0,
    least_crossed_rows_over_findable=0.8,
    tpc_dedx=3.0,
)


def result(name: str = "Lambda_Test", hypothesis: MassHypothesis = MassHypothesis.LAMBDA, **changes) -> Result:
    return Result(name, hypothesis, replace(BASE_CUTS, **changes), BINNING)


def engine_for(*results: Result) -> tuple[SelectionEngine, ConfigRegistry]:
    registry = ConfigRegistry("v0", RecordingAccumulator)
    registry.extend(list(results))
    registry.lock()
    return SelectionEngine(registry), registry


class TestV0Selection(unittest.TestCase):
    def test_candidate_passing_every_cut_is_filled_once(self) -> None:
        engine, registry = engine_for(result())
        filled = engine.process(lambda_candidate(), 7.5)

        self.assertEqual(filled, [0])
        self.assertEqual(registry.accumulator_at(0).fills, [(7.5, 1.5, 1.1157)])
        self.assertEqual(engine.n_processed, 1)
        self.assertEqual(engine.n_skipped, 0)

    def test_each_topological_family_can_reject(self) -> None:
        base = lambda_candidate()
        failing = {
            "rapidity": replace(base, rap_lambda=0.6),
            "track eta": replace(base, pos=track(1, +1, eta=0.9)),
            "radius": replace(base, radius=0.4),
            "max radius": replace(base, radius=150.0),
            "negative DCA": replace(base, neg=track(2, -1, nsigma_proton=10.0, dca_to_pv=0.05)),
            "daughter DCA": replace(base, dca_daughters=1.5),
            "pointing angle": replace(base, cos_pa=0.97),
            "lifetime": replace(base, distance=60.0),
            "on the fly": replace(base, on_fly=True),
        }
        cfg = result()
        self.assertTrue(v0_passes(cfg, base))
        for label, candidate in failing.items():
            with self.subTest(label=label):
                self.assertFalse(v0_passes(cfg, candidate))

    def test_quality_and_pid_families_can_reject(self) -> None:
        base = lambda_candidate()
        cfg = result()
        failing = {
            "crossed rows": replace(base, pos=track(1, +1, crossed_rows=69.0)),
            "crossed rows over findable": replace(base, pos=track(1, +1, crossed_rows=100.0)),
            "proton PID": replace(base, pos=track(1, +1, nsigma_proton=3.5)),
            "pion PID": replace(base, neg=track(2, -1, nsigma_proton=10.0, nsigma_pion=-3.0)),
        }
        for label, candidate in failing.items():
            with self.subTest(label=label):
                self.assertFalse(v0_passes(cfg, candidate))

    def test_daughter_roles_follow_the_hypothesis(self) -> None:
        lam = result("Lambda_Test")
        alam = result("AntiLambda_Test", MassHypothesis.ANTILAMBDA)
        engine, registry = engine_for(lam, alam)

        self.assertEqual(engine.process(lambda_candidate(), 5.0), [0])
        anti = lambda_candidate(
            pos=track(1, +1, nsigma_proton=10.0),
            neg=track(2, -1),
            mass_antilambda=1.1159,
        )
        self.assertEqual(engine.process(anti, 5.0), [1])
        self.assertEqual(registry.accumulator_at(1).fills, [(5.0, 1.5, 1.1159)])

    def test_armenteros_applies_to_k0short_only(self) -> None:
        k0s = result("K0Short_Test", MassHypothesis.K0SHORT)
        candidate = lambda_candidate(neg=track(2, -1))
        # pt_arm 0.1 is below 0.2 * |0.7|
        self.assertFalse(v0_passes(k0s, candidate))
        self.assertTrue(v0_passes(result(), candidate))
        self.assertTrue(v0_passes(k0s, replace(candidate, alpha=0.1, pt_arm=0.2)))
        self.assertTrue(v0_passes(result("K0Short_NoAP", MassHypothesis.K0SHORT, use_armenteros=False), candidate))

    def test_baryon_momentum_uses_the_baryon_leg(self) -> None:
        cfg = result(min_baryon_momentum=1.5)
        self.assertFalse(v0_passes(cfg, lambda_candidate()))
        self.assertTrue(v0_passes(cfg, lambda_candidate(pos=track(1, +1, inner_p=2.0))))

    def test_legacy_sentinels_disable_track_quality_cuts(self) -> None:
        poor = lambda_candidate(pos=track(1, +1, tpc_chi2=600.0, length=85.0))
        self.assertFalse(v0_passes(result(max_chi2_per_cluster=4.0), poor))
        self.assertTrue(v0_passes(result(max_chi2_per_cluster=1e4), poor))
        self.assertFalse(v0_passes(result(min_track_length=90.0), poor))
        self.assertTrue(v0_passes(result(min_track_length=-1.0), poor))

    def test_leg_aggregates_are_capped(self) -> None:
        long_legs = lambda_candidate(pos=track(1, +1, length=1500.0), neg=track(2, -1, length=1200.0))
        self.assertEqual(long_legs.min_track_length, 1000.0)
        no_inner = lambda_candidate(pos=track(1, +1, length=-1.0))
        self.assertEqual(no_inner.min_track_length, -1.0)
        self.assertEqual(lambda_candidate(neg=track(2, -1, crossed_rows=75.0)).least_crossed_rows, 75.0)
        clean = lambda_candidate(pos=track(1, +1, tpc_chi2=0.0), neg=track(2, -1, tpc_chi2=0.0))
        self.assertEqual(clean.max_chi2_per_cluster, 0.0)

    def test_its_refit_requirement(self) -> None:
        no_its = lambda_candidate(neg=track(2, -1, nsigma_proton=10.0, status=cand.TPC_REFIT))
        self.assertTrue(v0_passes(result(), no_its))
        self.assertFalse(v0_passes(result(use_its_refit=True), no_its))

    def test_low_momentum_proton_needs_proton_like_dedx_with_276_selection(self) -> None:
        cfg = result(tpc_dedx=5.0, use_276tev_dedx=True)
        slow = track(1, +1, inner_pt=0.8, nsigma_proton=4.0)
        self.assertFalse(v0_passes(cfg, lambda_candidate(pos=slow)))
        self.assertTrue(v0_passes(cfg, lambda_candidate(pos=replace(slow, inner_pt=1.2))))
        self.assertTrue(v0_passes(cfg, lambda_candidate(pos=replace(slow, nsigma_proton=2.0))))

    def test_no_early_exit_across_configurations(self) -> None:
        engine, registry = engine_for(
            result("Lambda_Strict", dca_v0_daughters=0.1),
            result("Lambda_Loose"),
            result("Lambda_AlsoLoose", v0_radius=1.0),
        )
        self.assertEqual(engine.process(lambda_candidate(), 30.0), [1, 2])
        self.assertEqual(registry.accumulator_at(0).fills, [])
        self.assertEqual(len(registry.accumulator_at(2).fills), 1)

    def test_preselection_skips_candidate_for_every_configuration(self) -> None:
        engine, registry = engine_for(result("Lambda_A"), result("Lambda_B"))
        rejected = [
            lambda_candidate(neg=None),
            lambda_candidate(neg=track(2, +1)),
            lambda_candidate(pos=track(1, +1, status=cand.ITS_REFIT)),
            lambda_candidate(pos=track(1, +1, kink_index=3)),
            lambda_candidate(pos=track(1, +1, findable_clusters=0.0)),
            lambda_candidate(pos=track(1, +1, crossed_rows=60.0, length=70.0)),
        ]
        for candidate in rejected:
            self.assertEqual(engine.process(candidate, 5.0), [])
        self.assertEqual(engine.n_skipped, len(rejected))
        self.assertEqual(engine.n_processed, 0)
        self.assertEqual(registry.accumulator_at(0).fills, [])

    def test_few_crossed_rows_is_kept_for_long_tracks(self) -> None:
        candidate = lambda_candidate(pos=track(1, +1, crossed_rows=60.0, findable_clusters=65.0))
        self.assertIsNone(cand.v0_skip_reason(candidate))


if __name__ == "__main__":
    unittest.main()
