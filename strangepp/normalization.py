"""End-of-run normalization of the pseudorapidity density.

The sum histogram has pseudorapidity on x and vertex position on y; its y
underflow row holds the acceptance. Finalization projects the two parts,
divides them, scales by the event normalization and the bin width, and
optionally adds rebinned and mirrored copies.
"""

from dataclasses import dataclass
import logging
import math
from typing import Any

import ROOT

from .counters import EventCounters, FinalizationError, NormalizationFactors, TriggerBits, trigger_string
from .histograms import axis_edges, clone_detached, find_object


LOGGER = logging.getLogger("strangepp.normalization")

TRIGGERS_NAME = "triggers"


def project_x(
    h: Any,
    name: str,
    first_bin: int,
    last_bin: int,
    correct_empty: bool = True,
    respect_errors: bool = True,
) -> Any | None:
    """Sum ``h`` over y bins [first_bin, last_bin] onto its x axis.

    Empty cells are ignored. A cell without error is skipped when
    ``respect_errors`` is set and enters with a unit error otherwise. With
    ``correct_empty`` each x bin is scaled by (y bins in range) / (y bins that
    contributed). Returns None when nothing can be projected.
    """
    if h is None:
        return None
    xaxis = h.GetXaxis()
    n_y = h.GetNbinsY()
    first, last = int(first_bin), int(last_bin)
    if first < 0:
        first = 0
    elif first >= n_y + 1:
        first = n_y
    if last < 0:
        last = n_y
    elif last > n_y + 1:
        last = n_y
    if last - first < 0:
        LOGGER.warning("Nothing to project [%d,%d] of %s", first, last, h.GetName())
        return None

    edges = axis_edges(xaxis)
    ret = ROOT.TH1D(name, h.GetTitle(), len(edges) - 1, edges)
    ret.SetDirectory(0)
    ret.Sumw2()
    ret.GetXaxis().SetTitle(xaxis.GetTitle())

    y_bins = last - first + 1
    filled = 0
    for xbin in range(0, xaxis.GetNbins() + 2):
        content = 0.0
        error2 = 0.0
        n_bins = 0
        for ybin in range(first, last + 1):
            c1 = h.GetBinContent(xbin, ybin)
            e1 = h.GetBinError(xbin, ybin)
            if c1 < 1e-12:
                continue
            if e1 < 1e-12:
                if respect_errors:
                    continue
                e1 = 1.0
            content += c1
            error2 += e1 * e1
            n_bins += 1
        if content > 0 and n_bins > 0:
            factor = float(y_bins) / n_bins if correct_empty else 1.0
            ret.SetBinContent(xbin, content * factor)
            ret.SetBinError(xbin, factor * math.sqrt(error2))
            filled += 1

    if filled == 0:
        LOGGER.warning("No contributing bins in [%d,%d] of %s, no %s produced", first, last, h.GetName(), name)
        return None
    return ret


def divide(numerator: Any, denominator: Any) -> Any:
    """Bin-by-bin division in place; relative errors add in quadrature."""
    numerator.Divide(denominator)
    return numerator


def scale_to_density(h: Any, factor: float) -> Any:
    """Multiply by ``factor`` and divide every bin by its width, in place."""
    h.Scale(factor, "width")
    return h


def rebin(h: Any, factor: int, cut_edges: bool = False) -> Any | None:
    """Copy of ``h`` with ``factor`` adjacent bins merged by inverse-variance weighting.

    Returns None when no rebinning is requested (factor <= 1) or when the
    factor does not divide the number of bins.
    """
    factor = int(factor)
    if factor <= 1:
        return None
    n_bins = h.GetNbinsX()
    if n_bins % factor != 0:
        LOGGER.warning(
            "Rebin factor %d is not a divisor of current number of bins %d in the histogram %s",
            factor,
            n_bins,
            h.GetName(),
        )
        return None

    tmp = clone_detached(h, f"{h.GetName()}_rebin{factor:02d}")
    tmp.Rebin(factor)

    for i in range(1, n_bins // factor + 1):
        content = 0.0
        sumw = 0.0
        wsum = 0.0
        n_used = 0
        for j in range(1, factor + 1):
            b = (i - 1) * factor + j
            c = h.GetBinContent(b)
            if c <= 0:
                continue
            if cut_edges and (h.GetBinContent(b + 1) <= 0 or h.GetBinContent(b - 1) <= 0):
                LOGGER.warning(
                    "removing bin %d=%f of %s (%d=%f,%d=%f)",
                    b,
                    c,
                    h.GetName(),
                    b + 1,
                    h.GetBinContent(b + 1),
                    b - 1,
                    h.GetBinContent(b - 1),
                )
                continue
            e = h.GetBinError(b)
            if e <= 0:
                continue
            w = 1.0 / (e * e)
            content += c
            sumw += w
            wsum += w * c
            n_used += 1

        if content > 0 and n_used > 0:
            tmp.SetBinContent(i, wsum / sumw)
            tmp.SetBinError(i, 1.0 / math.sqrt(sumw))
        else:
            tmp.SetBinContent(i, 0.0)
            tmp.SetBinError(i, 0.0)
    return tmp


def symmetrize(h: Any) -> Any | None:
    """Mirror of ``h`` over [-xmax, -xmin], filled by index reflection.

    Bins from the reflection of the first populated bin up to the last
    populated bin are copied; one extra bin next to the boundary repeats the
    first populated bin. Returns None for a histogram without positive
    content.
    """
    n_bins = h.GetNbinsX()
    first = n_bins + 1
    last = 0
    for i in range(1, n_bins + 1):
        if h.GetBinContent(i) <= 0:
            continue
        first = min(first, i)
        last = max(last, i)
    if last == 0:
        LOGGER.warning("Nothing to mirror in %s", h.GetName())
        return None

    s = clone_detached(h, f"{h.GetName()}_mirror")
    s.SetTitle(f"{h.GetTitle()} (mirrored)")
    s.Reset()
    s.SetBins(n_bins, -h.GetXaxis().GetXmax(), -h.GetXaxis().GetXmin())
    s.SetMarkerStyle(h.GetMarkerStyle() + 4)

    x_first = h.GetBinCenter(first - 1)
    f1 = h.GetXaxis().FindBin(-x_first)
    l2 = s.GetXaxis().FindBin(x_first)
    j = l2
    for i in range(f1, last + 1):
        s.SetBinContent(j, h.GetBinContent(i))
        s.SetBinError(j, h.GetBinError(i))
        j -= 1
    # overlap bin
    s.SetBinContent(l2 + 1, h.GetBinContent(first))
    s.SetBinError(l2 + 1, h.GetBinError(first))
    return s


def _set_attributes(h: Any, colour: int, marker: int, title: str, ytitle: str = "#frac{1}{N} #frac{dN_{ch}}{d#eta}") -> None:
    h.SetTitle(title)
    h.SetMarkerColor(colour)
    h.SetMarkerStyle(marker)
    h.SetMarkerSize(1)
    h.SetFillStyle(0)
    h.SetYTitle(ytitle)
    h.SetStats(0)


@dataclass(frozen=True)
class NormalizationOptions:
    name: str = "strangeness"
    rebin: int = 5
    cut_edges: bool = False
    symmetrize: bool = True
    correct_empty: bool = True
    # Vertex rows summed into the acceptance profile. Only the underflow row
    # holds acceptance; row 1 already carries candidates.
    acceptance_bins: tuple[int, int] = (0, 0)


@dataclass
class YieldOutputs:
    suffix: str
    acceptance: Any | None = None
    raw_yield: Any | None = None
    dndeta: Any | None = None
    rebinned: Any | None = None
    mirrored: Any | None = None
    mirrored_rebinned: Any | None = None

    def objects(self) -> list[Any]:
        out = [self.mirrored, self.dndeta, self.acceptance, self.raw_yield, self.rebinned, self.mirrored_rebinned]
        return [o for o in out if o is not None]


@dataclass
class NormalizationResult:
    factors: NormalizationFactors
    triggers: Any
    data: YieldOutputs
    mc: YieldOutputs | None = None
    trigger_string: Any = None
    vtx_axis: Any = None

    def objects(self) -> list[Any]:
        out = [self.triggers] + self.data.objects()
        if self.mc is not None:
            out += self.mc.objects()
        out += [o for o in (self.trigger_string, self.vtx_axis) if o is not None]
        return out


class NormalizationPipeline:
    """Turns the stored sums of one run into normalized yield histograms."""

    def __init__(
        self,
        options: NormalizationOptions,
        trigger_mask: int = TriggerBits.INEL,
        vtx_min: float = -10.0,
        vtx_max: float = 10.0,
    ) -> None:
        self.options = options
        self.trigger_mask = TriggerBits(int(trigger_mask))
        self.vtx_min = float(vtx_min)
        self.vtx_max = float(vtx_max)

    def finalize(self, sums: Any) -> NormalizationResult | None:
        """Run the pipeline; on a fatal condition log it and return None."""
        try:
            return self._finalize(sums)
        except FinalizationError as exc:
            LOGGER.error("Finalization of '%s' aborted: %s", self.options.name, exc)
            return None

    def _require(self, sums: Any, name: str) -> Any:
        obj = find_object(sums, name)
        if obj is None:
            raise FinalizationError(f"Couldn't find histogram '{name}' in sums")
        return obj

    def _finalize(self, sums: Any) -> NormalizationResult:
        name = self.options.name
        triggers = self._require(sums, TRIGGERS_NAME)
        total = self._require(sums, name)
        total_mc = find_object(sums, f"{name}MC")

        counters = EventCounters.from_hist(triggers, self.trigger_mask, self.vtx_min, self.vtx_max)
        factors = counters.derive_normalization()
        counters.log_summary(factors)

        data = self.yield_outputs(total, "", factors, colour=ROOT.kRed + 1, marker=20)
        mc = None
        if total_mc is not None:
            mc = self.yield_outputs(total_mc, "MC", factors, colour=ROOT.kRed + 3, marker=21)

        trig = ROOT.TNamed("trigString", trigger_string(self.trigger_mask))
        trig.SetUniqueID(int(self.trigger_mask))
        vtx_axis = ROOT.TAxis(1, self.vtx_min, self.vtx_max)
        vtx_axis.SetName("vtxAxis")
        vtx_axis.SetTitle(f"v_{{z}}#in[{self.vtx_min:+5.1f},{self.vtx_max:+5.1f}]cm")

        return NormalizationResult(
            factors=factors,
            triggers=clone_detached(triggers, TRIGGERS_NAME),
            data=data,
            mc=mc,
            trigger_string=trig,
            vtx_axis=vtx_axis,
        )

    def yield_outputs(self, total: Any, suffix: str, factors: NormalizationFactors, colour: int = 1, marker: int = 20) -> YieldOutputs:
        opts = self.options
        label = f"{opts.name}{suffix}"
        first, last = opts.acceptance_bins
        norm = project_x(total, f"norm{label}", first, last, opts.correct_empty, respect_errors=True)
        dndeta = project_x(total, f"dndeta{label}", 1, total.GetNbinsY(), opts.correct_empty, respect_errors=False)
        out = YieldOutputs(suffix=suffix, acceptance=norm)
        if dndeta is not None:
            out.raw_yield = clone_detached(dndeta, f"raw{label}")
        if norm is None or dndeta is None:
            LOGGER.warning("No normalized yield for %s: missing %s projection", label, "acceptance" if norm is None else "yield")
            return out

        divide(dndeta, norm)
        scale_to_density(dndeta, factors.v_norm)
        if factors.n_accepted > 0:
            norm.Scale(1.0 / factors.n_accepted)
        else:
            LOGGER.warning("No accepted events, acceptance profile of %s left unscaled", label)

        _set_attributes(dndeta, colour, marker, f"ALICE {label}")
        _set_attributes(norm, colour, marker, f"ALICE {label} normalisation", ytitle="Acceptance")
        out.dndeta = dndeta

        out.rebinned = rebin(dndeta, opts.rebin, opts.cut_edges)
        if opts.symmetrize:
            out.mirrored = symmetrize(dndeta)
            if out.rebinned is not None:
                out.mirrored_rebinned = symmetrize(out.rebinned)
        return out
