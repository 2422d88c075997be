import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - runtime compatibility path
    import tomli as tomllib

from .configurations import BinningSettings
from .counters import parse_trigger_mask
from .hypotheses import MassHypothesis
from .presets import available_presets


DEFAULTS_PATH = Path(__file__).parent / "defaults.toml"
TASKS = ("analyse", "normalize", "full_chain")
FAMILIES = ("v0", "cascade")


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        cfg = tomllib.load(f)
    if not isinstance(cfg, dict):
        raise ValueError(f"Invalid defaults TOML at {path}: top-level table is missing.")
    return cfg


_DEFAULT_CONFIG_CACHE: dict[str, Any] = {}


def default_config_template() -> dict[str, Any]:
    if not _DEFAULT_CONFIG_CACHE:
        _DEFAULT_CONFIG_CACHE.update(_load_toml(DEFAULTS_PATH))
    return copy.deepcopy(_DEFAULT_CONFIG_CACHE)


def _required_table(table: dict[str, Any], key: str, context: str = "defaults") -> dict[str, Any]:
    value = table.get(key)
    if not isinstance(value, dict):
        raise ValueError(f"Missing or invalid [{key}] table in {context} config")
    return value


def _required_value(table: dict[str, Any], key: str, context: str) -> Any:
    if key not in table:
        raise ValueError(f"Missing required key '{context}.{key}'")
    return table[key]


def _float_list(table: dict[str, Any], key: str, context: str, min_len: int = 2) -> tuple[float, ...]:
    values = tuple(float(v) for v in list(_required_value(table, key, context)))
    if len(values) < min_len:
        raise ValueError(f"{context}.{key} must contain at least {min_len} values.")
    if any(b <= a for a, b in zip(values, values[1:])):
        raise ValueError(f"{context}.{key} must be strictly increasing.")
    return values


def _deep_merge_dict(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge_dict(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def merge_config(cfg: dict[str, Any] | None) -> dict[str, Any]:
    merged = default_config_template()
    if not isinstance(cfg, dict):
        return merged
    return _deep_merge_dict(merged, cfg)


@dataclass(frozen=True)
class RuntimePaths:
    base_output_dir: str
    base_variant_output_dir: str
    input_filename: str
    analysis_output: str
    sums_input: str
    normalized_output: str
    metadata_output: str
    log_file: str


@dataclass(frozen=True)
class EventSelection:
    trigger_mask: str
    trigger_bits: int
    vtx_min: float
    vtx_max: float


@dataclass(frozen=True)
class ConfigurationPlan:
    v0_preset: str
    cascade_preset: str
    sweep_steps: int
    use_full: bool

    def preset_for(self, family: str) -> str:
        return self.v0_preset if family == "v0" else self.cascade_preset


@dataclass(frozen=True)
class NormalizationSettings:
    name: str
    rebin: int
    cut_edges: bool
    symmetrize: bool
    correct_empty: bool
    acceptance_bins: tuple[int, int]
    eta_bins: int
    eta_min: float
    eta_max: float
    vtx_bins: int
    acceptance_min: float
    acceptance_max: float
    reference_result: str


@dataclass(frozen=True)
class RuntimeConfig:
    task: str
    families: tuple[str, ...]
    log_level: str
    max_events: int
    event_tree: str
    v0_tree: str
    cascade_tree: str
    event: EventSelection
    binning: BinningSettings
    configurations: ConfigurationPlan
    normalization: NormalizationSettings
    lambda_mass_mean: tuple[float, ...]
    lambda_mass_sigma: tuple[float, ...]
    paths: RuntimePaths


def _parse_families(run_cfg: dict[str, Any]) -> tuple[str, ...]:
    raw = _required_value(run_cfg, "families", "run")
    values = [str(raw).strip().lower()] if isinstance(raw, str) else [str(v).strip().lower() for v in list(raw)]
    if not values:
        raise ValueError("run.families must contain at least one of: v0, cascade.")
    for value in values:
        if value not in FAMILIES:
            raise ValueError(f"Unsupported family '{value}' in run.families. Allowed: {', '.join(FAMILIES)}.")
    return tuple(dict.fromkeys(values))


def _build_runtime_paths(common: dict[str, Any], paths: dict[str, Any]) -> RuntimePaths:
    period = str(_required_value(common, "period", "common"))
    reco_pass = str(_required_value(common, "reco_pass", "common"))
    variant = str(_required_value(common, "variant", "common"))
    base_input_dir = str(_required_value(common, "base_input_dir", "common"))
    base_output_root = str(_required_value(common, "base_output_root", "common"))
    input_basename = str(_required_value(common, "input_basename", "common"))
    output_basename = str(_required_value(common, "output_basename", "common"))
    normalized_basename = str(_required_value(common, "normalized_basename", "common"))

    base_output_dir = f"{base_output_root}{period}/{reco_pass}/"
    base_variant_output_dir = f"{base_output_dir}{variant}/"
    analysis_output = f"{base_variant_output_dir}{output_basename}"

    def pick(key: str, default: str) -> str:
        value = paths.get(key)
        return str(value) if value else default

    return RuntimePaths(
        base_output_dir=base_output_dir,
        base_variant_output_dir=base_variant_output_dir,
        input_filename=pick("input", f"{base_input_dir}data/{period}/{reco_pass}/{input_basename}"),
        analysis_output=pick("analysis_output", analysis_output),
        sums_input=pick("sums_input", analysis_output),
        normalized_output=pick("normalized_output", f"{base_variant_output_dir}{normalized_basename}"),
        metadata_output=pick("metadata_output", f"{base_variant_output_dir}run_metadata.json"),
        log_file=str(paths.get("log_file", "") or ""),
    )


def _build_binning(binning: dict[str, Any]) -> BinningSettings:
    windows_cfg = _required_table(binning, "mass_window", "binning")
    windows: dict[str, tuple[float, float]] = {}
    for key, value in windows_cfg.items():
        hypothesis = MassHypothesis.from_name(key)
        pair = [float(v) for v in list(value)]
        if len(pair) != 2 or pair[1] <= 0:
            raise ValueError(f"binning.mass_window.{key} must be [centre, half_width] with half_width > 0.")
        windows[hypothesis.value] = (pair[0], pair[1])
    mass_bins = int(_required_value(binning, "mass_bins", "binning"))
    if mass_bins < 1:
        raise ValueError("binning.mass_bins must be positive.")
    return BinningSettings(
        centrality_edges=_float_list(binning, "centrality_edges", "binning"),
        cascade_centrality_edges=_float_list(binning, "cascade_centrality_edges", "binning"),
        sweep_centrality_edges=_float_list(binning, "sweep_centrality_edges", "binning"),
        qa_centrality_edges=_float_list(binning, "qa_centrality_edges", "binning"),
        v0_pt_edges=_float_list(binning, "v0_pt_edges", "binning"),
        cascade_pt_edges=_float_list(binning, "cascade_pt_edges", "binning"),
        mass_bins=mass_bins,
        mass_windows=windows,
    )


def _build_plan(conf: dict[str, Any]) -> ConfigurationPlan:
    presets = {}
    for family in FAMILIES:
        key = f"{family}_preset"
        value = str(_required_value(conf, key, "configurations")).strip().lower()
        allowed = available_presets(family)
        if value not in allowed:
            raise ValueError(f"Unsupported configurations.{key} '{value}'. Allowed: {', '.join(allowed)}.")
        presets[key] = value
    steps = int(_required_value(conf, "sweep_steps", "configurations"))
    if steps < 1:
        raise ValueError("configurations.sweep_steps must be >= 1.")
    return ConfigurationPlan(
        v0_preset=presets["v0_preset"],
        cascade_preset=presets["cascade_preset"],
        sweep_steps=steps,
        use_full=bool(conf.get("use_full", False)),
    )


def _build_normalization(norm: dict[str, Any]) -> NormalizationSettings:
    acceptance_bins = [int(v) for v in list(_required_value(norm, "acceptance_bins", "normalization"))]
    if len(acceptance_bins) != 2:
        raise ValueError("normalization.acceptance_bins must have 2 values: [first, last].")
    eta_min = float(_required_value(norm, "eta_min", "normalization"))
    eta_max = float(_required_value(norm, "eta_max", "normalization"))
    if not eta_max > eta_min:
        raise ValueError("normalization.eta_max must be larger than normalization.eta_min.")
    name = str(_required_value(norm, "name", "normalization"))
    if not name:
        raise ValueError("normalization.name must not be empty.")
    return NormalizationSettings(
        name=name,
        rebin=int(_required_value(norm, "rebin", "normalization")),
        cut_edges=bool(norm.get("cut_edges", False)),
        symmetrize=bool(norm.get("symmetrize", True)),
        correct_empty=bool(norm.get("correct_empty", True)),
        acceptance_bins=(acceptance_bins[0], acceptance_bins[1]),
        eta_bins=int(_required_value(norm, "eta_bins", "normalization")),
        eta_min=eta_min,
        eta_max=eta_max,
        vtx_bins=int(_required_value(norm, "vtx_bins", "normalization")),
        acceptance_min=float(_required_value(norm, "acceptance_min", "normalization")),
        acceptance_max=float(_required_value(norm, "acceptance_max", "normalization")),
        reference_result=str(norm.get("reference_result", "") or ""),
    )


def current_runtime_config(cfg: dict[str, Any] | None = None) -> RuntimeConfig:
    merged = merge_config(cfg)

    run_cfg = _required_table(merged, "run", "config")
    common = _required_table(merged, "common", "config")
    event = _required_table(merged, "event", "config")
    binning = _required_table(merged, "binning", "config")
    conf = _required_table(merged, "configurations", "config")
    norm = _required_table(merged, "normalization", "config")
    selection = _required_table(merged, "selection", "config")
    paths_cfg = merged.get("paths", {})
    if not isinstance(paths_cfg, dict):
        raise ValueError("Invalid [paths] table in config")

    task = str(_required_value(run_cfg, "task", "run")).strip().lower()
    if task not in TASKS:
        raise ValueError(f"Unsupported run.task '{task}'. Allowed: {', '.join(TASKS)}.")

    vtx_min = float(_required_value(event, "vtx_min", "event"))
    vtx_max = float(_required_value(event, "vtx_max", "event"))
    if not vtx_max > vtx_min:
        raise ValueError("event.vtx_max must be larger than event.vtx_min.")
    mask = str(event.get("trigger_mask", "INEL"))

    lambda_mean = tuple(float(v) for v in list(_required_value(selection, "lambda_mass_mean", "selection")))
    lambda_sigma = tuple(float(v) for v in list(_required_value(selection, "lambda_mass_sigma", "selection")))
    if len(lambda_mean) != 5 or len(lambda_sigma) != 4:
        raise ValueError("selection.lambda_mass_mean needs 5 values and selection.lambda_mass_sigma 4 values.")
    if not lambda_sigma[0] + lambda_sigma[2] > 0:
        raise ValueError("selection.lambda_mass_sigma must give a positive width at zero V0 pT.")

    return RuntimeConfig(
        task=task,
        families=_parse_families(run_cfg),
        log_level=str(run_cfg.get("log_level", "INFO")),
        max_events=int(run_cfg.get("max_events", 0)),
        event_tree=str(_required_value(common, "event_tree", "common")),
        v0_tree=str(_required_value(common, "v0_tree", "common")),
        cascade_tree=str(_required_value(common, "cascade_tree", "common")),
        event=EventSelection(
            trigger_mask=mask,
            trigger_bits=int(parse_trigger_mask(mask)),
            vtx_min=vtx_min,
            vtx_max=vtx_max,
        ),
        binning=_build_binning(binning),
        configurations=_build_plan(conf),
        normalization=_build_normalization(norm),
        lambda_mass_mean=lambda_mean,
        lambda_mass_sigma=lambda_sigma,
        paths=_build_runtime_paths(common, paths_cfg),
    )
