"""Result configurations and the per-family registry that owns their accumulators."""

from dataclasses import dataclass, field, fields, replace
import logging
import math
from typing import Any, Callable, Iterator

from .cuts import VariableCut
from .hypotheses import MassHypothesis, HypothesisStrategy, strategy_for


LOGGER = logging.getLogger("strangepp.configurations")


@dataclass(frozen=True)
class Binning:
    centrality_edges: tuple[float, ...]
    pt_edges: tuple[float, ...]
    mass_bins: int
    mass_min: float
    mass_max: float

    def __post_init__(self) -> None:
        if len(self.centrality_edges) < 2 or len(self.pt_edges) < 2:
            raise ValueError("Binning needs at least 2 centrality and 2 pT edges.")
        if int(self.mass_bins) < 1 or not self.mass_max > self.mass_min:
            raise ValueError(f"Invalid mass axis: {self.mass_bins} bins in [{self.mass_min}, {self.mass_max}].")

    @property
    def mass_edges(self) -> tuple[float, ...]:
        width = (self.mass_max - self.mass_min) / self.mass_bins
        return tuple(self.mass_min + i * width for i in range(self.mass_bins + 1))

    @classmethod
    def around(cls, centrality_edges, pt_edges, center: float, half_width: float, mass_bins: int) -> "Binning":
        return cls(
            centrality_edges=tuple(float(v) for v in centrality_edges),
            pt_edges=tuple(float(v) for v in pt_edges),
            mass_bins=int(mass_bins),
            mass_min=float(center) - float(half_width),
            mass_max=float(center) + float(half_width),
        )

    @classmethod
    def full(cls, center: float, half_width: float) -> "Binning":
        """Fine uniform binning used by the unbinned "Full" results."""
        return cls(
            centrality_edges=tuple(float(i) for i in range(101)),
            pt_edges=tuple(round(0.1 * i, 10) for i in range(251)),
            mass_bins=400,
            mass_min=float(center) - float(half_width),
            mass_max=float(center) + float(half_width),
        )


@dataclass(frozen=True)
class V0Cuts:
    use_on_the_fly: bool = False
    min_eta_tracks: float | None = -0.8
    max_eta_tracks: float | None = 0.8
    min_rapidity: float | None = -0.5
    max_rapidity: float | None = 0.5
    v0_radius: float | None = None
    max_v0_radius: float | None = None
    dca_neg_to_pv: float | None = None
    dca_pos_to_pv: float | None = None
    dca_v0_daughters: float | None = None
    v0_cospa: VariableCut = field(default_factory=lambda: VariableCut(None))
    proper_lifetime: float | None = None
    least_crossed_rows: float | None = None
    least_crossed_rows_over_findable: float | None = None
    min_baryon_momentum: float | None = None
    tpc_dedx: float | None = None
    use_armenteros: bool = True
    armenteros_parameter: float = 0.2
    use_its_refit: bool = False
    max_chi2_per_cluster: float | None = None
    min_track_length: float | None = None
    use_276tev_dedx: bool = False


@dataclass(frozen=True)
class CascadeCuts:
    swap_bachelor_charge: bool = False
    min_eta_tracks: float | None = -0.8
    max_eta_tracks: float | None = 0.8
    min_rapidity: float | None = -0.5
    max_rapidity: float | None = 0.5
    dca_neg_to_pv: float | None = None
    dca_pos_to_pv: float | None = None
    dca_v0_daughters: float | None = None
    v0_cospa: VariableCut = field(default_factory=lambda: VariableCut(None))
    v0_radius: float | None = None
    dca_v0_to_pv: float | None = None
    v0_mass: float | None = None
    dca_bach_to_pv: float | None = None
    dca_casc_daughters: VariableCut = field(default_factory=lambda: VariableCut(None))
    casc_cospa: VariableCut = field(default_factory=lambda: VariableCut(None))
    casc_radius: float | None = None
    v0_mass_sigma: float | None = None
    proper_lifetime: float | None = None
    least_clusters: float | None = None
    tpc_dedx: float | None = None
    use_tof: bool = False
    xi_rejection: float | None = None
    dca_bach_to_baryon: float | None = None
    bach_baryon_cospa: VariableCut = field(default_factory=lambda: VariableCut(None))
    min_v0_lifetime: float | None = None
    max_v0_lifetime: float | None = None
    use_its_refit: bool = False
    max_chi2_per_cluster: float | None = None
    min_track_length: float | None = None
    use_276tev_v0_cospa: bool = False
    dca_cascade_to_pv: float | None = None
    dca_neg_to_pv_weighted: float | None = None
    dca_pos_to_pv_weighted: float | None = None
    dca_bach_to_pv_weighted: float | None = None


CUTS_BY_FAMILY: dict[str, type] = {"v0": V0Cuts, "cascade": CascadeCuts}


@dataclass(frozen=True)
class Result:
    name: str
    hypothesis: MassHypothesis
    cuts: Any
    binning: Binning

    def __post_init__(self) -> None:
        expected = CUTS_BY_FAMILY[self.strategy.family]
        if not isinstance(self.cuts, expected):
            raise ValueError(
                f"Result '{self.name}' ({self.hypothesis.value}) needs {expected.__name__}, got {type(self.cuts).__name__}."
            )

    @property
    def strategy(self) -> HypothesisStrategy:
        return strategy_for(self.hypothesis)

    @property
    def family(self) -> str:
        return self.strategy.family


def _with_value(cuts: Any, name: str, value: Any, use_parametric: bool | None = None) -> Any:
    current = getattr(cuts, name)
    if isinstance(current, VariableCut) and not isinstance(value, VariableCut):
        return replace(cuts, **{name: current.with_constant(value, use_parametric)})
    return replace(cuts, **{name: value})


def derive_with_override(
    base: Result,
    name: str,
    mutator: Callable[[Any], Any] | None = None,
    binning: Binning | None = None,
    **changes: Any,
) -> Result:
    """New result named ``name`` with the base cuts plus ``changes``.

    Plain values assigned to a parametric-capable cut replace its constant and
    keep the parametric curve. ``mutator`` receives the updated cuts and must
    return a cuts value of the same type.
    """
    known = {f.name for f in fields(base.cuts)}
    unknown = sorted(set(changes) - known)
    if unknown:
        raise ValueError(f"Unknown cut(s) for {type(base.cuts).__name__}: {', '.join(unknown)}")
    cuts = base.cuts
    for key, value in changes.items():
        cuts = _with_value(cuts, key, value)
    if mutator is not None:
        cuts = mutator(cuts)
    return Result(name=name, hypothesis=base.hypothesis, cuts=cuts, binning=binning or base.binning)


def linear_values(low: float, high: float, steps: int) -> list[float]:
    if steps < 1:
        raise ValueError("Sweep needs at least one step.")
    return [low + (high - low) * (i + 1) / float(steps) for i in range(steps)]


def angular_values(min_cos: float, steps: int) -> list[float]:
    if steps < 1:
        raise ValueError("Sweep needs at least one step.")
    delta = math.acos(min_cos) / float(steps)
    return [math.cos((i + 1) * delta) for i in range(steps)]


def interpolated_values(start: float, end: float, steps: int = 12) -> list[float]:
    if steps < 1:
        raise ValueError("Sweep needs at least one step.")
    return [start + (k / float(steps)) * (end - start) for k in range(1, steps + 1)]


def linear_sweep(base: Result, cut: str, low: float, high: float, steps: int, prefix: str) -> list[Result]:
    """``{prefix}_{i}`` for i in [0, steps), cut stepping from low (exclusive) to high."""
    return [
        Result(f"{prefix}_{i}", base.hypothesis, _with_value(base.cuts, cut, value), base.binning)
        for i, value in enumerate(linear_values(low, high, steps))
    ]


def angular_sweep(base: Result, cut: str, min_cos: float, steps: int, prefix: str) -> list[Result]:
    """Pointing-angle sweep equally spaced in angle; the parametric form is switched off."""
    return [
        Result(f"{prefix}_{i}", base.hypothesis, _with_value(base.cuts, cut, value, use_parametric=False), base.binning)
        for i, value in enumerate(angular_values(min_cos, steps))
    ]


def tight_loose_sweep(base: Result, cut: str, start: float, end: float, prefix: str, steps: int = 12) -> list[Result]:
    """``{prefix}_{k}`` for k in [1, steps], cut moving from ``start`` towards ``end``."""
    return [
        Result(f"{prefix}_{k}", base.hypothesis, _with_value(base.cuts, cut, value), base.binning)
        for k, value in enumerate(interpolated_values(start, end, steps), start=1)
    ]


def _default_accumulator_factory(result: Result) -> Any:
    from .histograms import book_accumulator

    return book_accumulator(result)


class ConfigRegistry:
    """Insertion-ordered results of one decay family, each with its own accumulator.

    The registry is append-only. Once locked (when the event loop starts) no
    further result can be added.
    """

    def __init__(self, family: str, accumulator_factory: Callable[[Result], Any] | None = None) -> None:
        if family not in CUTS_BY_FAMILY:
            raise ValueError(f"Unsupported family '{family}'. Available: {', '.join(CUTS_BY_FAMILY)}.")
        self.family = family
        self._factory = accumulator_factory or _default_accumulator_factory
        self._results: list[Result] = []
        self._accumulators: list[Any] = []
        self._index: dict[str, int] = {}
        self._locked = False

    def add_configuration(self, result: Result) -> int:
        if self._locked:
            raise RuntimeError(f"Cannot add '{result.name}': the {self.family} registry is locked.")
        if result.family != self.family:
            raise ValueError(f"Result '{result.name}' belongs to the {result.family} family, not {self.family}.")
        index = len(self._results)
        if result.name in self._index:
            LOGGER.warning(
                "Duplicate configuration name '%s' at index %d; lookups by name return index %d.",
                result.name,
                index,
                self._index[result.name],
            )
        else:
            self._index[result.name] = index
        self._results.append(result)
        self._accumulators.append(self._factory(result))
        return index

    def extend(self, results: list[Result]) -> None:
        for result in results:
            self.add_configuration(result)

    def lock(self) -> None:
        self._locked = True

    @property
    def locked(self) -> bool:
        return self._locked

    def configuration_count(self) -> int:
        return len(self._results)

    def configuration_at(self, index: int) -> Result:
        return self._results[index]

    def accumulator_at(self, index: int) -> Any:
        return self._accumulators[index]

    def index_of(self, name: str) -> int:
        if name not in self._index:
            raise KeyError(f"No configuration named '{name}' in the {self.family} registry.")
        return self._index[name]

    def accumulator(self, name: str) -> Any:
        return self._accumulators[self.index_of(name)]

    def names(self) -> list[str]:
        return [r.name for r in self._results]

    def entries(self) -> Iterator[tuple[Result, Any]]:
        return iter(zip(self._results, self._accumulators))

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[Result]:
        return iter(self._results)

    def __contains__(self, name: object) -> bool:
        return name in self._index


@dataclass(frozen=True)
class BinningSettings:
    """Axis defaults shared by every preset of a run."""

    centrality_edges: tuple[float, ...]
    cascade_centrality_edges: tuple[float, ...]
    sweep_centrality_edges: tuple[float, ...]
    qa_centrality_edges: tuple[float, ...]
    v0_pt_edges: tuple[float, ...]
    cascade_pt_edges: tuple[float, ...]
    mass_bins: int
    mass_windows: dict[str, tuple[float, float]]

    def window(self, hypothesis: MassHypothesis) -> tuple[float, float]:
        if hypothesis.value not in self.mass_windows:
            raise ValueError(f"Missing binning.mass_window.{hypothesis.value} in config.")
        center, half_width = self.mass_windows[hypothesis.value]
        return float(center), float(half_width)

    def for_hypothesis(
        self,
        hypothesis: MassHypothesis,
        centrality_edges: tuple[float, ...] | None = None,
        mass_bins: int | None = None,
        half_width: float | None = None,
    ) -> Binning:
        center, default_half = self.window(hypothesis)
        if strategy_for(hypothesis).family == "v0":
            pt_edges, default_centrality = self.v0_pt_edges, self.centrality_edges
        else:
            pt_edges, default_centrality = self.cascade_pt_edges, self.cascade_centrality_edges
        return Binning.around(
            centrality_edges or default_centrality,
            pt_edges,
            center,
            default_half if half_width is None else half_width,
            mass_bins or self.mass_bins,
        )
