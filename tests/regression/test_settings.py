import unittest

from strangepp import settings as s
from strangepp.counters import TriggerBits
from strangepp.hypotheses import MassHypothesis


class TestConfigAndPathDerivation(unittest.TestCase):
    def test_runtime_paths_derive_from_common(self) -> None:
        cfg = {
            "common": {
                "period": "LHC99",
                "reco_pass": "apassX",
                "variant": "vreg",
                "base_input_dir": "/tmp/in/",
                "base_output_root": "/tmp/out/",
            },
        }
        runtime = s.current_runtime_config(cfg)

        self.assertEqual(runtime.paths.base_output_dir, "/tmp/out/LHC99/apassX/")
        self.assertEqual(runtime.paths.base_variant_output_dir, "/tmp/out/LHC99/apassX/vreg/")
        self.assertEqual(runtime.paths.input_filename, "/tmp/in/data/LHC99/apassX/StrangenessTrees.root")
        self.assertEqual(runtime.paths.analysis_output, "/tmp/out/LHC99/apassX/vreg/AnalysisResults.root")
        self.assertEqual(runtime.paths.sums_input, runtime.paths.analysis_output)
        self.assertEqual(runtime.paths.normalized_output, "/tmp/out/LHC99/apassX/vreg/Normalized.root")
        self.assertEqual(runtime.paths.metadata_output, "/tmp/out/LHC99/apassX/vreg/run_metadata.json")

    def test_explicit_paths_override_derived_ones(self) -> None:
        runtime = s.current_runtime_config({"paths": {"input": "/data/trees.root", "sums_input": "/data/merged.root"}})
        self.assertEqual(runtime.paths.input_filename, "/data/trees.root")
        self.assertEqual(runtime.paths.sums_input, "/data/merged.root")
        self.assertNotEqual(runtime.paths.analysis_output, "/data/merged.root")

    def test_merge_config_keeps_nested_defaults(self) -> None:
        merged = s.merge_config({"binning": {"mass_window": {"Lambda": [1.1157, 0.02]}}})

        self.assertEqual(merged["binning"]["mass_window"]["Lambda"], [1.1157, 0.02])
        self.assertIn("XiMinus", merged["binning"]["mass_window"])
        self.assertIn("v0_pt_edges", merged["binning"])
        self.assertEqual(s.merge_config(None), s.default_config_template())

    def test_defaults_build_a_complete_runtime_config(self) -> None:
        runtime = s.current_runtime_config()

        self.assertEqual(runtime.task, "analyse")
        self.assertEqual(runtime.families, ("v0", "cascade"))
        self.assertEqual(runtime.event.trigger_bits, int(TriggerBits.INEL))
        self.assertEqual(runtime.binning.window(MassHypothesis.OMEGA_PLUS), (1.672, 0.05))
        self.assertEqual(runtime.normalization.acceptance_bins, (0, 0))
        self.assertEqual(runtime.binning.sweep_centrality_edges, (0.0, 90.0))
        self.assertEqual(runtime.binning.cascade_centrality_edges[:4], (0.0, 5.0, 10.0, 20.0))
        self.assertEqual(runtime.binning.for_hypothesis(MassHypothesis.XI_MINUS).centrality_edges, runtime.binning.cascade_centrality_edges)
        self.assertEqual(runtime.binning.for_hypothesis(MassHypothesis.LAMBDA).centrality_edges, runtime.binning.centrality_edges)
        self.assertEqual(runtime.configurations.preset_for("cascade"), "standard")
        self.assertEqual(len(runtime.lambda_mass_mean), 5)

    def test_trigger_mask_and_families_are_parsed(self) -> None:
        runtime = s.current_runtime_config({"event": {"trigger_mask": "INEL>0|NSD"}, "run": {"families": "cascade"}})
        self.assertEqual(runtime.event.trigger_bits, int(TriggerBits.INEL_GT0 | TriggerBits.NSD))
        self.assertEqual(runtime.families, ("cascade",))

    def test_cascade_only_preset_is_accepted(self) -> None:
        runtime = s.current_runtime_config({"configurations": {"cascade_preset": "276TeV"}})
        self.assertEqual(runtime.configurations.preset_for("cascade"), "276tev")

    def test_invalid_values_raise(self) -> None:
        invalid = [
            {"run": {"task": "fit"}},
            {"run": {"families": ["v0", "kink"]}},
            {"run": {"families": []}},
            {"event": {"vtx_min": 10.0, "vtx_max": -10.0}},
            {"binning": {"mass_window": {"Sigma": [1.19, 0.05]}}},
            {"binning": {"mass_window": {"Lambda": [1.116, 0.0]}}},
            {"binning": {"v0_pt_edges": [0.0, 2.0, 1.0]}},
            {"configurations": {"v0_preset": "nominal"}},
            {"configurations": {"v0_preset": "276tev"}},
            {"configurations": {"sweep_steps": 0}},
            {"normalization": {"acceptance_bins": [0]}},
            {"normalization": {"eta_min": 1.0, "eta_max": -1.0}},
            {"selection": {"lambda_mass_sigma": [0.002]}},
            {"selection": {"lambda_mass_sigma": [0.0, 0.0, 0.0, 0.0]}},
            {"paths": "out.root"},
        ]
        for cfg in invalid:
            with self.subTest(cfg=cfg):
                with self.assertRaises(ValueError):
                    s.current_runtime_config(cfg)


if __name__ == "__main__":
    unittest.main()
