import math
import os
import tempfile
import unittest

from strangepp.counters import CounterBin, EventCounters, TriggerBits


def _import_root_or_none():
    try:
        import ROOT  # type: ignore

        return ROOT
    except Exception:
        return None


class RootTestCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.ROOT = _import_root_or_none()
        if cls.ROOT is not None:
            cls.ROOT.gROOT.SetBatch(True)
            cls.ROOT.TH1.AddDirectory(False)

    def setUp(self) -> None:
        if self.ROOT is None:
            self.skipTest("ROOT not available")

    def th1(self, name: str, contents: list[float], xmin: float, xmax: float, errors: list[float] | None = None):
        h = self.ROOT.TH1D(name, name, len(contents), xmin, xmax)
        h.Sumw2()
        for i, c in enumerate(contents, start=1):
            h.SetBinContent(i, c)
            h.SetBinError(i, errors[i - 1] if errors is not None else (1.0 if c > 0 else 0.0))
        return h


class TestHistogramOperations(RootTestCase):
    def test_scale_to_density_divides_by_bin_width(self) -> None:
        from strangepp.normalization import scale_to_density

        h = self.th1("h_scale", [4.0, 8.0], 0.0, 1.0)
        scale_to_density(h, 2.0)
        self.assertAlmostEqual(h.GetBinContent(1), 16.0)
        self.assertAlmostEqual(h.GetBinContent(2), 32.0)

    def test_rebin_averages_with_inverse_variance_weights(self) -> None:
        from strangepp.normalization import rebin

        h = self.th1("h_rebin", [float(i) for i in range(1, 11)], 0.0, 1.0)
        out = rebin(h, 2)

        self.assertEqual(out.GetName(), "h_rebin_rebin02")
        self.assertEqual(out.GetNbinsX(), 5)
        self.assertEqual(h.GetNbinsX(), 10)
        for i, expected in enumerate([1.5, 3.5, 5.5, 7.5, 9.5], start=1):
            self.assertAlmostEqual(out.GetBinContent(i), expected)
            self.assertAlmostEqual(out.GetBinError(i), 1.0 / math.sqrt(2.0))
        # Width-weighted integral is preserved for equal errors.
        self.assertAlmostEqual(out.Integral("width"), h.Integral("width"))

    def test_rebin_rejects_non_divisors_and_trivial_factors(self) -> None:
        from strangepp.normalization import rebin

        h = self.th1("h_rebin_bad", [1.0] * 10, 0.0, 1.0)
        with self.assertLogs("strangepp.normalization", level="WARNING"):
            self.assertIsNone(rebin(h, 3))
        self.assertIsNone(rebin(h, 1))

    def test_rebin_can_drop_bins_next_to_empty_ones(self) -> None:
        from strangepp.normalization import rebin

        h = self.th1("h_edges", [0.0, 0.0, 5.0, 5.0, 5.0, 5.0, 5.0, 5.0, 0.0, 0.0], 0.0, 1.0)
        kept = rebin(h, 2)
        self.assertAlmostEqual(kept.GetBinError(2), 1.0 / math.sqrt(2.0))
        with self.assertLogs("strangepp.normalization", level="WARNING"):
            cut = rebin(h, 2, cut_edges=True)
        self.assertAlmostEqual(cut.GetBinContent(2), 5.0)
        self.assertAlmostEqual(cut.GetBinError(2), 1.0)
        self.assertAlmostEqual(cut.GetBinError(3), 1.0 / math.sqrt(2.0))
        self.assertEqual(cut.GetBinContent(1), 0.0)
        self.assertEqual(cut.GetBinError(5), 0.0)

    def test_symmetrize_reflects_the_populated_side(self) -> None:
        from strangepp.normalization import symmetrize

        contents = [0.0, 0.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0]
        h = self.th1("h_sym", contents, -2.0, 2.0)
        s = symmetrize(h)

        self.assertEqual(s.GetName(), "h_sym_mirror")
        self.assertAlmostEqual(s.GetXaxis().GetXmin(), -2.0)
        self.assertAlmostEqual(s.GetXaxis().GetXmax(), 2.0)
        # Bin i of the mirror holds the bin at the reflected position -x.
        self.assertAlmostEqual(s.GetBinContent(1), h.GetBinContent(8))
        self.assertAlmostEqual(s.GetBinContent(2), h.GetBinContent(7))
        self.assertAlmostEqual(s.GetBinContent(3), h.GetBinContent(3))
        for i in range(4, 9):
            self.assertEqual(s.GetBinContent(i), 0.0)

    def test_symmetrize_full_positive_range(self) -> None:
        from strangepp.normalization import symmetrize

        h = self.th1("h_pos", [1.0, 2.0, 3.0, 4.0], 0.0, 2.0)
        s = symmetrize(h)
        self.assertAlmostEqual(s.GetXaxis().GetXmin(), -2.0)
        self.assertAlmostEqual(s.GetXaxis().GetXmax(), 0.0)
        for i in range(1, 5):
            self.assertAlmostEqual(s.GetBinContent(5 - i), h.GetBinContent(i))
            self.assertAlmostEqual(s.GetBinCenter(5 - i), -h.GetBinCenter(i))

    def test_symmetrize_empty_histogram(self) -> None:
        from strangepp.normalization import symmetrize

        with self.assertLogs("strangepp.normalization", level="WARNING"):
            self.assertIsNone(symmetrize(self.th1("h_empty", [0.0] * 4, 0.0, 1.0)))


class TestProjection(RootTestCase):
    def _density(self):
        h = self.ROOT.TH2D("proj_src", "", 2, 0.0, 2.0, 3, 0.0, 3.0)
        h.Sumw2()
        h.SetBinContent(1, 1, 2.0)
        h.SetBinError(1, 1, 1.0)
        h.SetBinContent(1, 2, 4.0)
        h.SetBinError(1, 2, 2.0)
        # no error on this cell
        h.SetBinContent(2, 1, 3.0)
        return h

    def test_empty_cell_correction(self) -> None:
        from strangepp.normalization import project_x

        out = project_x(self._density(), "proj", 1, 3, correct_empty=True, respect_errors=True)
        self.assertAlmostEqual(out.GetBinContent(1), 6.0 * 3.0 / 2.0)
        self.assertAlmostEqual(out.GetBinError(1), 1.5 * math.sqrt(5.0))
        self.assertEqual(out.GetBinContent(2), 0.0)

        plain = project_x(self._density(), "proj_plain", 1, 3, correct_empty=False)
        self.assertAlmostEqual(plain.GetBinContent(1), 6.0)
        self.assertAlmostEqual(plain.GetBinError(1), math.sqrt(5.0))

    def test_cells_without_error_get_unit_error(self) -> None:
        from strangepp.normalization import project_x

        out = project_x(self._density(), "proj_unit", 1, 3, correct_empty=True, respect_errors=False)
        self.assertAlmostEqual(out.GetBinContent(2), 9.0)
        self.assertAlmostEqual(out.GetBinError(2), 3.0)

    def test_nothing_to_project(self) -> None:
        from strangepp.normalization import project_x

        with self.assertLogs("strangepp.normalization", level="WARNING"):
            self.assertIsNone(project_x(self._density(), "proj_none", 0, 0))
        with self.assertLogs("strangepp.normalization", level="WARNING"):
            self.assertIsNone(project_x(self._density(), "proj_reversed", 3, 1))

    def test_acceptance_goes_into_the_underflow_row(self) -> None:
        from strangepp.histograms import book_density, fill_acceptance

        density = book_density("acc", 4, -2.0, 2.0, 2, -10.0, 10.0)
        fill_acceptance(density, -0.8, 0.8)
        fill_acceptance(density, -0.8, 0.8)
        self.assertEqual([density.GetBinContent(i, 0) for i in range(1, 5)], [0.0, 2.0, 2.0, 0.0])
        self.assertEqual(density.GetEntries(), 4)


def _sums(ROOT, accepted_events: int = 80, with_mc: bool = False) -> dict:
    from strangepp.histograms import book_density, clone_detached, fill_acceptance

    counters = EventCounters(TriggerBits.INEL, -10.0, 10.0)
    for key, value in dict(ALL=120, B=100, A=10, C=5, E=3, MB=100, WITH_TRIGGER=100, WITH_VERTEX=90, ACCEPTED=accepted_events).items():
        counters.counts[CounterBin[key]] = value
    density = book_density("strangeness", 4, -2.0, 2.0, 2, -10.0, 10.0)
    for _ in range(accepted_events):
        fill_acceptance(density, -1.0, 1.0)
    for _ in range(40):
        density.Fill(-0.5, 0.0)
    for _ in range(20):
        density.Fill(0.5, 5.0)
    sums = {"triggers": counters.to_hist(), "strangeness": density}
    if with_mc:
        sums["strangenessMC"] = clone_detached(density, "strangenessMC")
    return sums


class TestNormalizationPipeline(RootTestCase):
    def _pipeline(self):
        from strangepp.normalization import NormalizationOptions, NormalizationPipeline

        options = NormalizationOptions(name="strangeness", rebin=2, correct_empty=False)
        return NormalizationPipeline(options, TriggerBits.INEL, -10.0, 10.0)

    def test_normalized_yield(self) -> None:
        result = self._pipeline().finalize(_sums(self.ROOT))

        self.assertAlmostEqual(result.factors.vtx_eff, 0.8791, places=4)
        data = result.data
        self.assertEqual(data.dndeta.GetName(), "dndetastrangeness")
        self.assertEqual(data.acceptance.GetName(), "normstrangeness")
        self.assertAlmostEqual(data.raw_yield.GetBinContent(2), 40.0)
        self.assertAlmostEqual(data.acceptance.GetBinContent(2), 1.0)
        self.assertAlmostEqual(data.dndeta.GetBinContent(2), 40.0 / 80.0 * 80.0 / 91.0)
        self.assertAlmostEqual(data.dndeta.GetBinContent(3), 20.0 / 80.0 * 80.0 / 91.0)
        self.assertEqual(data.rebinned.GetNbinsX(), 2)
        self.assertIsNotNone(data.mirrored)
        self.assertIsNone(result.mc)

        names = [o.GetName() for o in result.objects()]
        for expected in ("triggers", "trigString", "vtxAxis", "dndetastrangeness_rebin02", "dndetastrangeness_mirror"):
            self.assertIn(expected, names)
        self.assertEqual(result.trigger_string.GetUniqueID(), int(TriggerBits.INEL))

    def test_acceptance_profile_reads_only_the_underflow_row(self) -> None:
        from strangepp.normalization import NormalizationOptions, NormalizationPipeline

        def with_low_vertex_yield():
            sums = _sums(self.ROOT)
            for _ in range(10):
                sums["strangeness"].Fill(-0.5, -5.0)
            return sums

        result = self._pipeline().finalize(with_low_vertex_yield())
        self.assertAlmostEqual(result.data.raw_yield.GetBinContent(2), 50.0)
        self.assertAlmostEqual(result.data.acceptance.GetBinContent(2), 1.0)

        # Including the first vertex row mixes candidate yields into the acceptance.
        options = NormalizationOptions(name="strangeness", rebin=2, correct_empty=False, acceptance_bins=(0, 1))
        mixed = NormalizationPipeline(options, TriggerBits.INEL, -10.0, 10.0).finalize(with_low_vertex_yield())
        self.assertAlmostEqual(mixed.data.acceptance.GetBinContent(2), 90.0 / 80.0)

    def test_simulation_density_gets_its_own_outputs(self) -> None:
        result = self._pipeline().finalize(_sums(self.ROOT, with_mc=True))
        self.assertIsNotNone(result.mc)
        self.assertEqual(result.mc.dndeta.GetName(), "dndetastrangenessMC")
        self.assertAlmostEqual(result.mc.dndeta.GetBinContent(2), result.data.dndeta.GetBinContent(2))

    def test_no_triggered_events_aborts_without_raising(self) -> None:
        sums = _sums(self.ROOT)
        sums["triggers"].SetBinContent(int(CounterBin.WITH_TRIGGER), 0)
        with self.assertLogs("strangepp.normalization", level="ERROR"):
            self.assertIsNone(self._pipeline().finalize(sums))

    def test_missing_histogram_aborts_without_raising(self) -> None:
        sums = _sums(self.ROOT)
        del sums["strangeness"]
        with self.assertLogs("strangepp.normalization", level="ERROR"):
            self.assertIsNone(self._pipeline().finalize(sums))
        with self.assertLogs("strangepp.normalization", level="ERROR"):
            self.assertIsNone(self._pipeline().finalize({}))

    def test_outputs_round_trip_through_a_file(self) -> None:
        from strangepp.histograms import find_object, write_objects

        result = self._pipeline().finalize(_sums(self.ROOT))
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "out", "Normalized.root")
            write_objects(path, {"strangeness_result": result.objects()})
            f = self.ROOT.TFile.Open(path)
            directory = f.Get("strangeness_result")
            dndeta = find_object(directory, "dndetastrangeness")
            self.assertAlmostEqual(dndeta.GetBinContent(2), result.data.dndeta.GetBinContent(2))
            self.assertIsNone(find_object(directory, "missing"))
            f.Close()


class TestAccumulatorBooking(RootTestCase):
    def test_axes_follow_the_binning(self) -> None:
        from strangepp.configurations import Binning, Result, V0Cuts
        from strangepp.histograms import book_accumulator
        from strangepp.hypotheses import MassHypothesis

        binning = Binning((0.0, 5.0, 10.0), (0.0, 0.5, 1.0, 2.0), 100, 1.066, 1.166)
        h = book_accumulator(Result("Lambda_Central", MassHypothesis.LAMBDA, V0Cuts(), binning))

        self.assertEqual(h.GetName(), "Lambda_Central")
        self.assertEqual(h.GetNbinsX(), 2)
        self.assertEqual(h.GetNbinsY(), 3)
        self.assertEqual(h.GetNbinsZ(), 100)
        self.assertAlmostEqual(h.GetYaxis().GetBinUpEdge(3), 2.0)
        self.assertAlmostEqual(h.GetZaxis().GetXmin(), 1.066)
        self.assertEqual(h.GetEntries(), 0)


if __name__ == "__main__":
    unittest.main()
