"""Flat candidate records handed to the selection engine.

Candidates are built once per reconstructed decay and discarded after the
configurations have been evaluated. The ``*_skip_reason`` functions implement
the preselection that drops a candidate for every configuration at once.
"""

from dataclasses import dataclass, field, fields
import logging
from typing import Any


LOGGER = logging.getLogger("strangepp.candidates")

# Track status bits (ESD convention).
ITS_REFIT = 0x4
TPC_REFIT = 0x40

MIN_TPC_ROWS = 70
MIN_TRACK_LENGTH = 80.0


@dataclass
class TrackRecord:
    index: int = -1
    charge: int = 0
    eta: float = 0.0
    status: int = 0
    crossed_rows: float = 0.0
    findable_clusters: float = 0.0
    tpc_clusters: int = 0
    tpc_chi2: float = 0.0
    # -1 when the track has no inner parameters.
    length: float = -1.0
    inner_p: float = -1.0
    inner_pt: float = -1.0
    kink_index: int = 0
    dca_to_pv: float = 0.0
    dca_sigma_x2: float = 0.0
    dca_sigma_y2: float = 0.0
    nsigma_pion: float = -100.0
    nsigma_proton: float = -100.0
    nsigma_kaon: float = -100.0
    tof_nsigma_pion: float = -100.0
    tof_nsigma_proton: float = -100.0
    tof_nsigma_kaon: float = -100.0

    @property
    def has_tpc_refit(self) -> bool:
        return bool(self.status & TPC_REFIT)

    @property
    def has_its_refit(self) -> bool:
        return bool(self.status & ITS_REFIT)

    @property
    def chi2_per_cluster(self) -> float:
        if self.tpc_clusters <= 0:
            return 1000.0
        return self.tpc_chi2 / float(self.tpc_clusters)

    @property
    def crossed_rows_over_findable(self) -> float:
        if self.findable_clusters <= 0:
            return 0.0
        return self.crossed_rows / float(self.findable_clusters)

    def nsigma(self, species: str) -> float:
        return float(getattr(self, f"nsigma_{species}"))

    def tof_nsigma(self, species: str) -> float:
        return float(getattr(self, f"tof_nsigma_{species}"))

    def weighted_dca(self) -> float:
        return self.dca_to_pv / (self.dca_sigma_x2 ** 2 + self.dca_sigma_y2 ** 2 + 1e-6) ** 0.5


def _legs(*tracks: TrackRecord | None) -> list[TrackRecord]:
    return [t for t in tracks if t is not None]


@dataclass
class V0Candidate:
    pt: float = 0.0
    eta: float = 0.0
    on_fly: bool = False
    mass_k0short: float = 0.0
    mass_lambda: float = 0.0
    mass_antilambda: float = 0.0
    rap_k0short: float = 0.0
    rap_lambda: float = 0.0
    radius: float = 0.0
    dca_daughters: float = 0.0
    dca_to_pv: float = 0.0
    cos_pa: float = 0.0
    distance: float = 0.0
    total_momentum: float = 0.0
    alpha: float = 0.0
    pt_arm: float = 0.0
    pos: TrackRecord | None = field(default=None)
    neg: TrackRecord | None = field(default=None)

    @property
    def dist_over_tot_mom(self) -> float:
        return self.distance / (self.total_momentum + 1e-10)

    @property
    def least_crossed_rows(self) -> float:
        return min([1e9, *(t.crossed_rows for t in _legs(self.pos, self.neg))])

    @property
    def least_crossed_rows_over_findable(self) -> float:
        return min([1e9, *(t.crossed_rows_over_findable for t in _legs(self.pos, self.neg))])

    @property
    def max_chi2_per_cluster(self) -> float:
        return max([-1.0, *(t.chi2_per_cluster for t in _legs(self.pos, self.neg))])

    @property
    def min_track_length(self) -> float:
        return min([1000.0, *(t.length for t in _legs(self.pos, self.neg))])


@dataclass
class CascadeCandidate:
    charge: int = 0
    pt: float = 0.0
    eta: float = 0.0
    mass_xi: float = 0.0
    mass_omega: float = 0.0
    rap_xi: float = 0.0
    rap_omega: float = 0.0
    v0_mass_lambda: float = 0.0
    v0_mass_antilambda: float = 0.0
    v0_pt: float = 0.0
    v0_total_momentum: float = 0.0
    dca_v0_daughters: float = 0.0
    v0_cos_pa: float = 0.0
    v0_radius: float = 0.0
    dca_v0_to_pv: float = 0.0
    dca_casc_daughters: float = 0.0
    casc_cos_pa: float = 0.0
    casc_radius: float = 0.0
    distance: float = 0.0
    total_momentum: float = 0.0
    v0_lifetime: float = -1.0
    dca_bach_to_baryon: float = 0.0
    bach_baryon_cos_pa: float = 0.0
    casc_dca_to_pv_xy: float = 0.0
    casc_dca_to_pv_z: float = 0.0
    pos: TrackRecord | None = field(default=None)
    neg: TrackRecord | None = field(default=None)
    bach: TrackRecord | None = field(default=None)

    @property
    def dist_over_tot_mom(self) -> float:
        return self.distance / (self.total_momentum + 1e-10)

    @property
    def casc_dca_to_pv(self) -> float:
        return (self.casc_dca_to_pv_xy ** 2 + self.casc_dca_to_pv_z ** 2) ** 0.5

    @property
    def least_clusters(self) -> float:
        return min([1000.0, *(float(t.tpc_clusters) for t in _legs(self.pos, self.neg, self.bach))])

    @property
    def max_chi2_per_cluster(self) -> float:
        return max([-1.0, *(t.chi2_per_cluster for t in _legs(self.pos, self.neg, self.bach))])

    @property
    def min_track_length(self) -> float:
        return min([1000.0, *(t.length for t in _legs(self.pos, self.neg, self.bach))])


def v0_skip_reason(v0: V0Candidate) -> str | None:
    pos, neg = v0.pos, v0.neg
    if pos is None or neg is None:
        return "missing daughter track"
    if pos.charge == neg.charge:
        return "like-sign daughters"
    if not (pos.has_tpc_refit and neg.has_tpc_refit):
        return "no TPC refit"
    if pos.kink_index > 0 or neg.kink_index > 0:
        return "kink daughter"
    if pos.findable_clusters <= 0 or neg.findable_clusters <= 0:
        return "no findable clusters"
    if (pos.crossed_rows < MIN_TPC_ROWS or neg.crossed_rows < MIN_TPC_ROWS) and v0.min_track_length < MIN_TRACK_LENGTH:
        return "short track with few crossed rows"
    return None


def cascade_skip_reason(casc: CascadeCandidate) -> str | None:
    legs = (casc.pos, casc.neg, casc.bach)
    if any(t is None for t in legs):
        return "missing daughter track"
    if casc.bach.index in (casc.pos.index, casc.neg.index):
        return "bachelor shares a V0 daughter track"
    if casc.pos.charge == casc.neg.charge:
        return "like-sign V0 daughters"
    if not all(t.has_tpc_refit for t in legs):
        return "no TPC refit"
    shortest = casc.min_track_length
    if any(t.tpc_clusters < MIN_TPC_ROWS for t in legs) and shortest < MIN_TRACK_LENGTH:
        return "short track with few TPC clusters"
    return None


def skip_reason(candidate: Any) -> str | None:
    if isinstance(candidate, CascadeCandidate):
        return cascade_skip_reason(candidate)
    return v0_skip_reason(candidate)


def _branch_name(prefix: str, attr: str) -> str:
    return prefix + "".join(part[:1].upper() + part[1:] for part in attr.split("_"))


def _read_track(entry: Any, prefix: str) -> TrackRecord | None:
    index = int(getattr(entry, f"{prefix}Index", -1))
    if index < 0:
        return None
    values: dict[str, Any] = {}
    for f in fields(TrackRecord):
        branch = _branch_name(prefix, f.name)
        if hasattr(entry, branch):
            values[f.name] = type(f.default)(getattr(entry, branch))
    values["index"] = index
    return TrackRecord(**values)


def _read_scalars(cls: type, entry: Any) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for f in fields(cls):
        if f.name in ("pos", "neg", "bach"):
            continue
        branch = _branch_name("f", f.name)
        if hasattr(entry, branch):
            values[f.name] = type(f.default)(getattr(entry, branch))
    return values


def v0_from_entry(entry: Any) -> V0Candidate:
    """Build a V0 candidate from a tree entry using ``fCamelCase`` branch names.

    Daughter branches carry an ``fPos``/``fNeg`` prefix; a negative
    ``fPosIndex``/``fNegIndex`` marks an unresolved daughter track.
    """
    return V0Candidate(pos=_read_track(entry, "fPos"), neg=_read_track(entry, "fNeg"), **_read_scalars(V0Candidate, entry))


def cascade_from_entry(entry: Any) -> CascadeCandidate:
    return CascadeCandidate(
        pos=_read_track(entry, "fPos"),
        neg=_read_track(entry, "fNeg"),
        bach=_read_track(entry, "fBach"),
        **_read_scalars(CascadeCandidate, entry),
    )
