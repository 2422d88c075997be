#!/usr/bin/env python3
"""Compare two strangepp output files histogram by histogram."""
import argparse
from dataclasses import dataclass
import os

ROOT = None


@dataclass
class Comparison:
    ref_keys: int
    cand_keys: int
    common: int
    missing: list[str]
    extra: list[str]
    content_diffs: list[str]
    error_diffs: list[str]
    entry_diffs: list[str]
    max_content_diff: float
    max_error_diff: float

    @property
    def ok(self) -> bool:
        return not (self.missing or self.extra or self.content_diffs or self.error_diffs or self.entry_diffs)


def collect(tdir, only: list[str], prefix=""):
    out = {}
    for key in tdir.GetListOfKeys():
        name = key.GetName()
        path = f"{prefix}/{name}" if prefix else name
        if not prefix and only and name not in only:
            continue
        obj = key.ReadObj()
        if obj.InheritsFrom("TDirectory"):
            out.update(collect(obj, only, path))
        elif obj.InheritsFrom("TH1"):
            # Detach from the file so the clone outlives it.
            clone = obj.Clone(f"{obj.GetName()}__cmp")
            clone.SetDirectory(0)
            out[path] = clone
    return out


def _max_bin_diffs(h1, h2) -> tuple[float, float]:
    max_content = 0.0
    max_error = 0.0
    for b in range(h1.GetNcells()):
        max_content = max(max_content, abs(h1.GetBinContent(b) - h2.GetBinContent(b)))
        max_error = max(max_error, abs(h1.GetBinError(b) - h2.GetBinError(b)))
    return max_content, max_error


def compare(ref_path: str, cand_path: str, directories: list[str], content_tol: float, error_tol: float, ignore_errors: bool) -> Comparison:
    global ROOT
    if ROOT is None:
        import ROOT as _ROOT
        ROOT = _ROOT

    ref_file = ROOT.TFile.Open(os.path.expandvars(os.path.expanduser(ref_path)))
    cand_file = ROOT.TFile.Open(os.path.expandvars(os.path.expanduser(cand_path)))
    if not ref_file or ref_file.IsZombie() or not cand_file or cand_file.IsZombie():
        raise OSError(f"Could not open {ref_path} or {cand_path}")
    ref = collect(ref_file, directories)
    cand = collect(cand_file, directories)
    ref_file.Close()
    cand_file.Close()

    common = sorted(set(ref) & set(cand))
    content_diffs: list[str] = []
    error_diffs: list[str] = []
    entry_diffs: list[str] = []
    max_content_diff = 0.0
    max_error_diff = 0.0
    for k in common:
        h1, h2 = ref[k], cand[k]
        if h1.GetNcells() != h2.GetNcells():
            content_diffs.append(k)
            continue
        # Accumulators are compared by entries as well as by content.
        if h1.GetEntries() != h2.GetEntries():
            entry_diffs.append(k)
        local_content, local_error = _max_bin_diffs(h1, h2)
        max_content_diff = max(max_content_diff, local_content)
        max_error_diff = max(max_error_diff, local_error)
        if local_content > content_tol:
            content_diffs.append(k)
        if (not ignore_errors) and local_error > error_tol:
            error_diffs.append(k)

    return Comparison(
        ref_keys=len(ref),
        cand_keys=len(cand),
        common=len(common),
        missing=sorted(set(ref) - set(cand)),
        extra=sorted(set(cand) - set(ref)),
        content_diffs=content_diffs,
        error_diffs=error_diffs,
        entry_diffs=entry_diffs,
        max_content_diff=max_content_diff,
        max_error_diff=max_error_diff,
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Compare strangepp ROOT outputs for smoke regression")
    parser.add_argument("--reference", required=True)
    parser.add_argument("--candidate", required=True)
    parser.add_argument(
        "--directory",
        action="append",
        default=[],
        help="Top-level directory to compare (e.g. v0, strangeness_sums). Repeat for several; default is all.",
    )
    parser.add_argument("--content-tol", type=float, default=1e-9)
    parser.add_argument("--error-tol", type=float, default=1e-9)
    parser.add_argument("--ignore-errors", action="store_true", help="Ignore histogram error differences")
    parser.add_argument("--verbose", action="store_true", help="List every differing key")
    args = parser.parse_args()

    res = compare(args.reference, args.candidate, args.directory, args.content_tol, args.error_tol, args.ignore_errors)
    print(f"ref_keys={res.ref_keys} cand_keys={res.cand_keys} common={res.common} missing={len(res.missing)} extra={len(res.extra)}")
    print(f"content_diffs={len(res.content_diffs)} max_content_diff={res.max_content_diff}")
    print(f"error_diffs={len(res.error_diffs)} max_error_diff={res.max_error_diff}")
    print(f"entry_diffs={len(res.entry_diffs)}")
    if args.verbose:
        for label, keys in (("missing", res.missing), ("extra", res.extra), ("content", res.content_diffs), ("error", res.error_diffs), ("entries", res.entry_diffs)):
            for k in keys:
                print(f"  {label}: {k}")
    return 0 if res.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
