import math
import unittest

from strangepp import cuts as c


class TestCutCombination(unittest.TestCase):
    def test_lower_bound_families_take_the_tighter_threshold(self) -> None:
        cut = c.VariableCut(0.95, c.ParametricCut(0.0, 0.0, 0.0, 0.0, 0.1, cosine=True))
        # cos(0.1) ~ 0.995 is above the constant, so it wins.
        self.assertAlmostEqual(cut.effective(1.0, c.V0_COSPA), math.cos(0.1))
        looser_curve = c.VariableCut(0.999, c.ParametricCut(0.0, 0.0, 0.0, 0.0, 0.1, cosine=True))
        self.assertAlmostEqual(looser_curve.effective(1.0, c.CASC_COSPA), 0.999)

    def test_upper_bound_tighter_family_takes_the_minimum(self) -> None:
        cut = c.VariableCut(1.0, c.ParametricCut(0.0, 0.0, 0.0, 0.0, 0.3))
        self.assertAlmostEqual(cut.effective(2.0, c.CASC_DAUGHTER_DCA), 0.3)

    def test_bachelor_baryon_cospa_takes_the_looser_threshold(self) -> None:
        constant = math.cos(0.04)
        cut = c.VariableCut(constant, c.ParametricCut(0.0, 0.0, 0.0, 0.0, 0.001, cosine=True))
        # Candidates are kept below the threshold: the larger value is looser and wins.
        self.assertAlmostEqual(cut.effective(2.0, c.BACH_BARYON_COSPA), math.cos(0.001))
        stricter_curve = c.VariableCut(constant, c.ParametricCut(0.0, 0.0, 0.0, 0.0, 0.1, cosine=True))
        self.assertAlmostEqual(stricter_curve.effective(2.0, c.BACH_BARYON_COSPA), constant)

    def test_parametric_form_can_be_switched_off(self) -> None:
        curve = c.ParametricCut(0.0, 0.0, 0.0, 0.0, 0.1, cosine=True)
        self.assertAlmostEqual(c.VariableCut(0.9, curve, use_parametric=False).effective(1.0, c.V0_COSPA), 0.9)
        self.assertAlmostEqual(c.VariableCut(None, curve).effective(1.0, c.V0_COSPA), math.cos(0.1))
        self.assertIsNone(c.VariableCut(None).effective(1.0, c.V0_COSPA))

    def test_with_constant_keeps_the_curve(self) -> None:
        curve = c.ParametricCut(1.0, -1.0, 0.0, 0.0, 0.0)
        cut = c.VariableCut(0.5, curve).with_constant(0.7)
        self.assertEqual(cut.constant, 0.7)
        self.assertIs(cut.parametric, curve)
        self.assertTrue(cut.use_parametric)
        self.assertFalse(c.VariableCut(0.5, curve).with_constant(0.7, use_parametric=False).use_parametric)


class TestParametricCurve(unittest.TestCase):
    def test_double_exponential_plus_constant(self) -> None:
        curve = c.ParametricCut(2.0, -1.0, 0.5, -0.1, 0.25)
        pt = 1.5
        expected = 2.0 * math.exp(-1.5) + 0.5 * math.exp(-0.15) + 0.25
        self.assertAlmostEqual(curve.evaluate(pt), expected)
        cosine = c.ParametricCut(2.0, -1.0, 0.5, -0.1, 0.25, cosine=True)
        self.assertAlmostEqual(cosine.evaluate(pt), math.cos(expected))

    def test_from_list_requires_five_values(self) -> None:
        self.assertEqual(c.ParametricCut.from_list([1, 2, 3, 4, 5]).const, 5.0)
        with self.assertRaises(ValueError):
            c.ParametricCut.from_list([1, 2, 3])


class TestComparisonsAndSentinels(unittest.TestCase):
    def test_comparisons_are_strict_and_none_always_passes(self) -> None:
        self.assertFalse(c.above(0.1, 0.1))
        self.assertTrue(c.above(0.1000001, 0.1))
        self.assertFalse(c.below(0.1, 0.1))
        self.assertFalse(c.abs_below(-3.0, 3.0))
        self.assertTrue(c.abs_below(-2.99, 3.0))
        self.assertTrue(c.above(-1e9, None))
        self.assertTrue(c.within(5.0, None, None))
        self.assertFalse(c.within(0.5, -0.5, 0.5))

    def test_legacy_disable_values(self) -> None:
        self.assertFalse(c.active(None))
        self.assertFalse(c.active(1e4, off_above=1e3))
        self.assertTrue(c.active(4.0, off_above=1e3))
        self.assertFalse(c.active(-1.0, off_below=0.0))
        self.assertTrue(c.active(90.0, off_below=0.0))


class TestMomentumDependentThresholds(unittest.TestCase):
    def test_v0_cospa_is_nominal_above_threshold_and_relaxed_below(self) -> None:
        self.assertEqual(c.momentum_dependent_v0_cospa(2.0), 0.998)
        self.assertAlmostEqual(c.momentum_dependent_v0_cospa(1.5 - 1e-9), 0.998, places=6)
        relaxed = c.momentum_dependent_v0_cospa(0.5)
        self.assertLess(relaxed, 0.998)
        self.assertAlmostEqual(relaxed, 0.9208, places=3)

    def test_expected_lambda_mass_and_sigma(self) -> None:
        self.assertAlmostEqual(c.expected_lambda_mass(3.0, (1.116, 0.0, 0.0, 0.0, 0.0)), 1.116)
        self.assertAlmostEqual(c.expected_lambda_mass(0.0, (1.116, 0.001, -1.0, 0.002, -2.0)), 1.119)
        self.assertAlmostEqual(c.expected_lambda_sigma(2.0, (0.002, 0.001, 0.0, 0.0)), 0.004)


if __name__ == "__main__":
    unittest.main()
