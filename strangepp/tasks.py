import logging
from typing import Any, Callable, Iterator, TYPE_CHECKING

import ROOT

from .analysis import AnalysisRun
from .candidates import cascade_from_entry, v0_from_entry
from .configurations import ConfigRegistry
from .counters import EventCounters, EventInfo
from .histograms import book_density, expand, write_objects
from .normalization import NormalizationOptions, NormalizationPipeline, NormalizationResult
from .presets import build_preset

if TYPE_CHECKING:
    from .settings import RuntimeConfig

LOGGER = logging.getLogger("strangepp.tasks")


def sums_dir_name(name: str) -> str:
    return f"{name}_sums"


def result_dir_name(name: str) -> str:
    return f"{name}_result"


def build_registries(runtime_config: "RuntimeConfig", accumulator_factory: Callable[[Any], Any] | None = None) -> dict[str, ConfigRegistry]:
    plan = runtime_config.configurations
    registries: dict[str, ConfigRegistry] = {}
    for family in runtime_config.families:
        registry = ConfigRegistry(family, accumulator_factory)
        results = build_preset(family, plan.preset_for(family), runtime_config.binning, plan.sweep_steps, plan.use_full)
        registry.extend(results)
        LOGGER.info("Added %d %s configurations (preset=%s)", len(registry), family, plan.preset_for(family))
        registries[family] = registry
    return registries


def resolve_reference(registries: dict[str, ConfigRegistry], name: str) -> tuple[str, int] | None:
    """Configuration feeding the pseudorapidity density; first V0 result when ``name`` is empty."""
    if name:
        for family, registry in registries.items():
            if name in registry:
                return family, registry.index_of(name)
        raise ValueError(f"normalization.reference_result '{name}' does not match any configuration.")
    for family in ("v0", "cascade"):
        if family in registries and len(registries[family]) > 0:
            return family, 0
    LOGGER.warning("No configuration registered, the pseudorapidity density stays empty")
    return None


def normalization_pipeline(runtime_config: "RuntimeConfig") -> NormalizationPipeline:
    norm = runtime_config.normalization
    options = NormalizationOptions(
        name=norm.name,
        rebin=norm.rebin,
        cut_edges=norm.cut_edges,
        symmetrize=norm.symmetrize,
        correct_empty=norm.correct_empty,
        acceptance_bins=norm.acceptance_bins,
    )
    return NormalizationPipeline(
        options,
        runtime_config.event.trigger_bits,
        runtime_config.event.vtx_min,
        runtime_config.event.vtx_max,
    )


def build_run(runtime_config: "RuntimeConfig", accumulator_factory: Callable[[Any], Any] | None = None) -> AnalysisRun:
    norm = runtime_config.normalization
    registries = build_registries(runtime_config, accumulator_factory)
    counters = EventCounters(runtime_config.event.trigger_bits, runtime_config.event.vtx_min, runtime_config.event.vtx_max)
    density = book_density(
        norm.name,
        norm.eta_bins,
        norm.eta_min,
        norm.eta_max,
        norm.vtx_bins,
        runtime_config.event.vtx_min,
        runtime_config.event.vtx_max,
    )
    return AnalysisRun(
        registries,
        counters,
        normalization_pipeline(runtime_config),
        density=density,
        reference=resolve_reference(registries, norm.reference_result),
        acceptance=(norm.acceptance_min, norm.acceptance_max),
        lambda_mass_mean=runtime_config.lambda_mass_mean,
        lambda_mass_sigma=runtime_config.lambda_mass_sigma,
    )


def _grouped_by_event(tree: Any, builder: Callable[[Any], Any], label: str) -> Iterator[tuple[int, list[Any]]]:
    """Yield (event index, candidates) from a candidate tree sorted by ``fEventIndex``."""
    current: int | None = None
    batch: list[Any] = []
    for entry in tree:
        index = int(entry.fEventIndex)
        if current is not None and index < current:
            raise RuntimeError(f"{label} tree is not sorted by event index ({index} after {current}).")
        if index != current and batch:
            yield current, batch
            batch = []
        current = index
        batch.append(builder(entry))
    if batch:
        yield current, batch


class _EventCursor:
    def __init__(self, groups: Iterator[tuple[int, list[Any]]] | None) -> None:
        self._groups = groups
        self._pending: tuple[int, list[Any]] | None = None
        self._advance()

    def _advance(self) -> None:
        self._pending = next(self._groups, None) if self._groups is not None else None

    def take(self, event_index: int) -> list[Any]:
        while self._pending is not None and self._pending[0] < event_index:
            LOGGER.debug("Dropping %d candidates of unread event %d", len(self._pending[1]), self._pending[0])
            self._advance()
        if self._pending is not None and self._pending[0] == event_index:
            batch = self._pending[1]
            self._advance()
            return batch
        return []


def _open_input(path: str) -> Any:
    in_path = expand(path)
    tfile = ROOT.TFile.Open(in_path)
    if not tfile or tfile.IsZombie():
        raise RuntimeError(f"Cannot open input file {in_path}")
    return tfile


def _get_tree(tfile: Any, name: str, required: bool) -> Any | None:
    tree = tfile.Get(name)
    if not tree:
        if required:
            raise RuntimeError(f"Missing tree '{name}' in {tfile.GetName()}")
        LOGGER.warning("Missing tree '%s' in %s, no candidates of this family", name, tfile.GetName())
        return None
    return tree


def _write_run_output(path: str, run: AnalysisRun, result: NormalizationResult | None, name: str) -> None:
    directories: dict[str, list[Any]] = {sums_dir_name(name): list(run.sums().values())}
    for family, registry in run.registries.items():
        directories[family] = [acc for _, acc in registry.entries()]
    if result is not None:
        directories[result_dir_name(name)] = result.objects()
    write_objects(path, directories)


def _event_loop(tfile: Any, run: AnalysisRun, runtime_config: "RuntimeConfig") -> int:
    event_tree = _get_tree(tfile, runtime_config.event_tree, required=True)

    cursors: dict[str, _EventCursor] = {}
    for family, tree_name, builder in (
        ("v0", runtime_config.v0_tree, v0_from_entry),
        ("cascade", runtime_config.cascade_tree, cascade_from_entry),
    ):
        if family not in run.registries:
            continue
        tree = _get_tree(tfile, tree_name, required=False)
        cursors[family] = _EventCursor(_grouped_by_event(tree, builder, tree_name) if tree is not None else None)

    max_events = int(runtime_config.max_events)
    n_events = 0
    for i_event, entry in enumerate(event_tree):
        if max_events and i_event >= max_events:
            break
        event = EventInfo.from_entry(entry)
        v0s = cursors["v0"].take(i_event) if "v0" in cursors else []
        cascades = cursors["cascade"].take(i_event) if "cascade" in cursors else []
        run.process_event(event, v0s, cascades)
        n_events += 1
    return n_events


def analyse(input_file: str, output_file: str, runtime_config: "RuntimeConfig") -> NormalizationResult | None:
    """Event loop over the event tree; candidates come from the per-family trees."""
    run = build_run(runtime_config)
    tfile = _open_input(input_file)
    try:
        n_events = _event_loop(tfile, run, runtime_config)
        LOGGER.info("Processed %d events from %s", n_events, input_file)

        result = run.finalize()
        if result is None:
            LOGGER.error("No normalization outputs for %s", input_file)
        _write_run_output(output_file, run, result, runtime_config.normalization.name)
    finally:
        tfile.Close()
    return result


def normalize(sums_file: str, output_file: str, runtime_config: "RuntimeConfig") -> NormalizationResult | None:
    """Finalize again from stored (possibly merged) sums."""
    name = runtime_config.normalization.name
    tfile = _open_input(sums_file)
    try:
        sums = tfile.Get(sums_dir_name(name))
        if not sums:
            LOGGER.error("Could not retrieve '%s' from %s", sums_dir_name(name), sums_file)
            return None

        result = normalization_pipeline(runtime_config).finalize(sums)
        if result is not None:
            write_objects(output_file, {result_dir_name(name): result.objects()})
    finally:
        tfile.Close()
    return result
