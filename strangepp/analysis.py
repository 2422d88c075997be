from enum import Enum
import logging
from typing import Any, Iterable

from .candidates import CascadeCandidate, V0Candidate
from .configurations import ConfigRegistry
from .counters import EventCounters, EventInfo
from .histograms import fill_acceptance
from .normalization import TRIGGERS_NAME, NormalizationPipeline, NormalizationResult
from .selection import LAMBDA_MASS_MEAN, LAMBDA_MASS_SIGMA, SelectionEngine


LOGGER = logging.getLogger("strangepp.analysis")


class RunState(Enum):
    ACCUMULATING = "accumulating"
    FINALIZED = "finalized"


class AnalysisRun:
    """State of one run: counters, registries with their accumulators and the
    pseudorapidity density, built once and passed to every stage.

    Candidates passing the reference configuration ``(family, index)`` feed the
    density; every accepted event adds one unit of acceptance in
    ``[acceptance_min, acceptance_max)``.
    """

    def __init__(
        self,
        registries: dict[str, ConfigRegistry],
        counters: EventCounters,
        pipeline: NormalizationPipeline,
        density: Any | None = None,
        reference: tuple[str, int] | None = None,
        acceptance: tuple[float, float] = (-0.8, 0.8),
        lambda_mass_mean: tuple[float, ...] = LAMBDA_MASS_MEAN,
        lambda_mass_sigma: tuple[float, ...] = LAMBDA_MASS_SIGMA,
    ) -> None:
        self.registries = registries
        self.counters = counters
        self.pipeline = pipeline
        self.density = density
        self.reference = reference
        self.acceptance = (float(acceptance[0]), float(acceptance[1]))
        self.engines = {
            family: SelectionEngine(registry, lambda_mass_mean, lambda_mass_sigma)
            for family, registry in registries.items()
        }
        if reference is not None:
            family, index = reference
            if family not in registries or not 0 <= index < len(registries[family]):
                raise ValueError(f"Reference configuration {family}[{index}] is not registered.")
        self.state = RunState.ACCUMULATING

    def reset(self) -> None:
        self.counters.reset()
        for registry in self.registries.values():
            for _, accumulator in registry.entries():
                accumulator.Reset()
        if self.density is not None:
            self.density.Reset()
        for engine in self.engines.values():
            engine.n_processed = 0
            engine.n_skipped = 0
        self.state = RunState.ACCUMULATING

    def _check_accumulating(self) -> None:
        if self.state is not RunState.ACCUMULATING:
            raise RuntimeError("Run already finalized; call reset() before processing more events.")

    def process_event(
        self,
        event: EventInfo,
        v0s: Iterable[V0Candidate] = (),
        cascades: Iterable[CascadeCandidate] = (),
    ) -> bool:
        """Count the event and, if accepted, run every candidate through the engines."""
        self._check_accumulating()
        for registry in self.registries.values():
            if not registry.locked:
                registry.lock()

        if not self.counters.count_event(event):
            return False
        if self.density is not None:
            fill_acceptance(self.density, *self.acceptance)

        for family, candidates in (("v0", v0s), ("cascade", cascades)):
            engine = self.engines.get(family)
            if engine is None:
                continue
            for candidate in candidates:
                filled = engine.process(candidate, event.centrality)
                if self.density is not None and self.reference is not None:
                    ref_family, ref_index = self.reference
                    if ref_family == family and ref_index in filled:
                        self.density.Fill(candidate.eta, event.vertex_z)
        return True

    def sums(self) -> dict[str, Any]:
        out: dict[str, Any] = {TRIGGERS_NAME: self.counters.to_hist(TRIGGERS_NAME)}
        if self.density is not None:
            out[self.density.GetName()] = self.density
        return out

    def finalize(self) -> NormalizationResult | None:
        self._check_accumulating()
        self.state = RunState.FINALIZED
        for family, engine in self.engines.items():
            LOGGER.info(
                "%s: %d candidates evaluated against %d configurations, %d skipped",
                family,
                engine.n_processed,
                len(engine.registry),
                engine.n_skipped,
            )
        return self.pipeline.finalize(self.sums())
