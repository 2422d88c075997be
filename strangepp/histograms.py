from array import array
import logging
import os
from pathlib import Path
from typing import Any, Iterable

import ROOT

from .configurations import Result


LOGGER = logging.getLogger("strangepp.histograms")

ACCUMULATOR_TITLE = ";Centrality (%);#it{p}_{T} (GeV/#it{c});Mass (GeV/#it{c}^{2})"


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(str(path)))


def ensure_parent(path: str) -> None:
    Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)


def write_hist(obj: Any, name: str | None = None) -> None:
    if name:
        obj.Write(name)
    else:
        obj.Write()


def edges_array(edges: Iterable[float]) -> array:
    return array("d", [float(v) for v in edges])


def axis_edges(axis: Any) -> array:
    n_bins = axis.GetNbins()
    return array("d", [axis.GetBinLowEdge(i) for i in range(1, n_bins + 2)])


def book_accumulator(result: Result) -> Any:
    """Zero-initialised (centrality, pT, mass) histogram owned by one configuration."""
    b = result.binning
    cent = edges_array(b.centrality_edges)
    pt = edges_array(b.pt_edges)
    mass = edges_array(b.mass_edges)
    hist = ROOT.TH3D(
        result.name,
        f"{result.name}{ACCUMULATOR_TITLE}",
        len(cent) - 1,
        cent,
        len(pt) - 1,
        pt,
        len(mass) - 1,
        mass,
    )
    hist.SetDirectory(0)
    hist.Sumw2()
    return hist


def book_density(
    name: str,
    eta_bins: int,
    eta_min: float,
    eta_max: float,
    vtx_bins: int,
    vtx_min: float,
    vtx_max: float,
) -> Any:
    """Pseudorapidity x vertex-z sum; the y underflow row carries the acceptance."""
    hist = ROOT.TH2D(name, f"{name};#eta;v_{{z}} (cm)", int(eta_bins), eta_min, eta_max, int(vtx_bins), vtx_min, vtx_max)
    hist.SetDirectory(0)
    hist.Sumw2()
    return hist


def fill_acceptance(density: Any, acceptance_min: float, acceptance_max: float) -> None:
    """Count one event in every eta bin whose centre lies inside the acceptance window."""
    xaxis = density.GetXaxis()
    underflow_y = density.GetYaxis().GetXmin() - 1.0
    for ix in range(1, xaxis.GetNbins() + 1):
        centre = xaxis.GetBinCenter(ix)
        if acceptance_min <= centre < acceptance_max:
            density.Fill(centre, underflow_y)


def clone_detached(obj: Any, name: str) -> Any:
    out = obj.Clone(name)
    if hasattr(out, "SetDirectory"):
        out.SetDirectory(0)
    return out


def find_object(container: Any, name: str) -> Any | None:
    """Look up ``name`` in a dict, a TList or a TDirectory; None when absent."""
    if container is None:
        return None
    if isinstance(container, dict):
        return container.get(name)
    if hasattr(container, "FindObject"):
        obj = container.FindObject(name)
        if obj:
            return obj
    if hasattr(container, "Get"):
        obj = container.Get(name)
        if obj:
            return obj
    return None


def write_objects(path: str, directories: dict[str, list[Any]]) -> None:
    out_path = expand(path)
    ensure_parent(out_path)
    out = ROOT.TFile(out_path, "recreate")
    if not out or out.IsZombie():
        raise RuntimeError(f"Cannot create output file {out_path}")
    for dir_name, objects in directories.items():
        target = out.mkdir(dir_name) if dir_name else out
        target.cd()
        for obj in objects:
            if obj is None:
                continue
            write_hist(obj)
    out.Close()
    LOGGER.info("Wrote %s", out_path)
