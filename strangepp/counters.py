"""Run-scoped trigger/event counters and the normalization scalars derived from them."""

from dataclasses import dataclass
from enum import IntEnum, IntFlag
import logging
import re
from typing import Any


LOGGER = logging.getLogger("strangepp.counters")


class FinalizationError(RuntimeError):
    """A precondition of the end-of-run normalization does not hold."""


class TriggerBits(IntFlag):
    INEL = 0x001
    INEL_GT0 = 0x002
    NSD = 0x004
    EMPTY = 0x008
    A = 0x010
    B = 0x020
    C = 0x040
    E = 0x080
    PILEUP = 0x100


TRIGGER_TOKENS = {
    "INEL": TriggerBits.INEL,
    "INEL>0": TriggerBits.INEL_GT0,
    "NSD": TriggerBits.NSD,
}


def parse_trigger_mask(mask: str | int | None) -> TriggerBits:
    """Turn ``"INEL"``, ``"INEL>0 | NSD"`` ... into trigger bits.

    Tokens are separated by spaces, commas or ``|``. Unknown tokens are
    ignored with a warning and an empty result falls back to INEL.
    """
    if isinstance(mask, int):
        return TriggerBits(mask) if mask else TriggerBits.INEL
    bits = TriggerBits(0)
    for token in re.split(r"[ ,|]+", str(mask or "").upper()):
        if not token:
            continue
        if token not in TRIGGER_TOKENS:
            LOGGER.warning("Unknown trigger '%s' in mask '%s'", token, mask)
            continue
        bits |= TRIGGER_TOKENS[token]
    return bits or TriggerBits.INEL


def trigger_string(mask: int) -> str:
    names = [token for token, bit in TRIGGER_TOKENS.items() if mask & bit]
    return " | ".join(names) if names else "none"


class CounterBin(IntEnum):
    ALL = 1
    B = 2
    A = 3
    C = 4
    E = 5
    MB = 6
    WITH_TRIGGER = 7
    WITH_VERTEX = 8
    ACCEPTED = 9


COUNTER_LABELS = {
    CounterBin.ALL: "All events",
    CounterBin.B: "w/B trigger",
    CounterBin.A: "w/A trigger",
    CounterBin.C: "w/C trigger",
    CounterBin.E: "w/E trigger",
    CounterBin.MB: "w/Collision trigger",
    CounterBin.WITH_TRIGGER: "w/Selected trigger",
    CounterBin.WITH_VERTEX: "w/Vertex",
    CounterBin.ACCEPTED: "Accepted by cut",
}


@dataclass
class EventInfo:
    trigger_bits: int = 0
    has_vertex: bool = False
    vertex_z: float = 0.0
    centrality: float = -1.0

    def has_triggers(self, bits: int) -> bool:
        return bits != 0 and (int(self.trigger_bits) & int(bits)) == int(bits)

    @classmethod
    def from_entry(cls, entry: Any) -> "EventInfo":
        return cls(
            trigger_bits=int(getattr(entry, "fTriggers")),
            has_vertex=bool(getattr(entry, "fHasVertex")),
            vertex_z=float(getattr(entry, "fVertexZ")),
            centrality=float(getattr(entry, "fCentrality", -1.0)),
        )


@dataclass(frozen=True)
class NormalizationFactors:
    n_all: int
    n_minbias: int
    n_triggered: int
    n_with_vertex: int
    n_accepted: int
    n_b: int
    n_a: int
    n_c: int
    n_e: int
    n_good: int
    vtx_eff: float
    v_norm: float
    good_fallback: bool = False


class EventCounters:
    """Counts events in the strict order all -> trigger classes -> selected
    trigger -> vertex -> vertex range. An event is accepted only when it
    reaches the last counter."""

    def __init__(self, trigger_mask: int = TriggerBits.INEL, vtx_min: float = -10.0, vtx_max: float = 10.0) -> None:
        if not vtx_max > vtx_min:
            raise ValueError(f"Invalid vertex range [{vtx_min}, {vtx_max}].")
        self.trigger_mask = TriggerBits(int(trigger_mask) or TriggerBits.INEL)
        self.vtx_min = float(vtx_min)
        self.vtx_max = float(vtx_max)
        self.counts: dict[CounterBin, int] = {}
        self.reset()

    def reset(self) -> None:
        self.counts = {b: 0 for b in CounterBin}

    def __getitem__(self, counter: CounterBin) -> int:
        return self.counts[counter]

    def vertex_in_range(self, vertex_z: float) -> bool:
        return self.vtx_min <= vertex_z < self.vtx_max

    def count_event(self, event: EventInfo) -> bool:
        self.counts[CounterBin.ALL] += 1
        for counter, bit in (
            (CounterBin.B, TriggerBits.B),
            (CounterBin.A, TriggerBits.A),
            (CounterBin.C, TriggerBits.C),
            (CounterBin.E, TriggerBits.E),
            (CounterBin.MB, TriggerBits.INEL),
        ):
            if event.has_triggers(bit):
                self.counts[counter] += 1

        if not event.has_triggers(self.trigger_mask):
            return False
        self.counts[CounterBin.WITH_TRIGGER] += 1

        if not event.has_vertex:
            return False
        self.counts[CounterBin.WITH_VERTEX] += 1

        if not self.vertex_in_range(event.vertex_z):
            return False
        self.counts[CounterBin.ACCEPTED] += 1
        return True

    def derive_normalization(self) -> NormalizationFactors:
        c = self.counts
        n_triggered = c[CounterBin.WITH_TRIGGER]
        if n_triggered <= 0:
            raise FinalizationError("Number of triggered events <= 0")

        n_b, n_a, n_c, n_e = c[CounterBin.B], c[CounterBin.A], c[CounterBin.C], c[CounterBin.E]
        n_good = n_b - n_a - n_c + 2 * n_e
        fallback = False
        if n_good <= 0:
            LOGGER.warning("Number of good events=%d=%d-%d-%d+2*%d<=0", n_good, n_b, n_a, n_c, n_e)
            n_good = c[CounterBin.MB]
            fallback = True
        if n_good <= 0:
            # Both the inclusion-exclusion count and minimum bias are empty.
            LOGGER.warning("No minimum-bias events either; vertex efficiency and normalization set to 0")
            vtx_eff = 0.0
            v_norm = 0.0
        else:
            vtx_eff = float(c[CounterBin.MB]) / n_triggered * float(c[CounterBin.ACCEPTED]) / n_good
            v_norm = float(c[CounterBin.ACCEPTED]) / n_good

        return NormalizationFactors(
            n_all=c[CounterBin.ALL],
            n_minbias=c[CounterBin.MB],
            n_triggered=n_triggered,
            n_with_vertex=c[CounterBin.WITH_VERTEX],
            n_accepted=c[CounterBin.ACCEPTED],
            n_b=n_b,
            n_a=n_a,
            n_c=n_c,
            n_e=n_e,
            n_good=n_good,
            vtx_eff=vtx_eff,
            v_norm=v_norm,
            good_fallback=fallback,
        )

    def log_summary(self, factors: NormalizationFactors) -> None:
        LOGGER.info(
            "Total of %9d events; minimum bias %9d; with %s trigger %9d; with vertex %9d; in [%+4.1f,%+4.1f]cm %9d",
            factors.n_all,
            factors.n_minbias,
            trigger_string(self.trigger_mask),
            factors.n_triggered,
            factors.n_with_vertex,
            self.vtx_min,
            self.vtx_max,
            factors.n_accepted,
        )
        LOGGER.info(
            "Triggers by type: B=%d A|C=%d (%d+%d) E=%d; good=%d; vertex efficiency=%f (%f)",
            factors.n_b,
            factors.n_a + factors.n_c,
            factors.n_a,
            factors.n_c,
            factors.n_e,
            factors.n_good,
            factors.vtx_eff,
            factors.v_norm,
        )

    def to_hist(self, name: str = "triggers") -> Any:
        import ROOT

        n_bins = int(CounterBin.ACCEPTED)
        hist = ROOT.TH1D(name, "Number of triggers", n_bins, 1, n_bins + 1)
        hist.SetDirectory(0)
        hist.SetYTitle("# of events")
        for counter, label in COUNTER_LABELS.items():
            hist.GetXaxis().SetBinLabel(int(counter), label)
            hist.SetBinContent(int(counter), self.counts[counter])
        hist.SetStats(0)
        return hist

    @classmethod
    def from_hist(
        cls,
        hist: Any,
        trigger_mask: int = TriggerBits.INEL,
        vtx_min: float = -10.0,
        vtx_max: float = 10.0,
    ) -> "EventCounters":
        counters = cls(trigger_mask, vtx_min, vtx_max)
        for counter in CounterBin:
            counters.counts[counter] = int(hist.GetBinContent(int(counter)))
        return counters

    def merge(self, other: "EventCounters") -> None:
        for counter in CounterBin:
            self.counts[counter] += other.counts[counter]
