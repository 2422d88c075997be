import argparse
import copy
from datetime import datetime, timezone
import json
import logging
import subprocess
import sys
import time
try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - runtime compatibility path
    import tomli as tomllib

import ROOT

from . import settings as s


LOGGER = logging.getLogger("strangepp")


def _setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)] + ([logging.FileHandler(log_file)] if log_file else []),
        force=True,
    )


def _git_revision() -> str:
    try:
        out = subprocess.run(["git", "rev-parse", "HEAD"], check=True, capture_output=True, text=True)
        return out.stdout.strip()
    except Exception:
        return "unknown"


def _write_metadata(path: str, payload: dict) -> None:
    from .histograms import ensure_parent, expand

    out = expand(path)
    ensure_parent(out)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)


def default_config() -> dict:
    return s.default_config_template()


def _factors_payload(result) -> dict:
    if result is None:
        return {}
    f = result.factors
    return {
        "n_all": f.n_all,
        "n_minbias": f.n_minbias,
        "n_triggered": f.n_triggered,
        "n_with_vertex": f.n_with_vertex,
        "n_accepted": f.n_accepted,
        "n_good": f.n_good,
        "good_fallback": f.good_fallback,
        "vtx_eff": f.vtx_eff,
        "v_norm": f.v_norm,
    }


def run(cfg: dict) -> dict:
    """Run the configured task; returns a summary stored in the run metadata."""
    runtime_cfg = s.current_runtime_config(cfg)
    paths = runtime_cfg.paths
    _setup_logging(runtime_cfg.log_level, paths.log_file or None)
    LOGGER.info("Starting run task=%s families=%s", runtime_cfg.task, ",".join(runtime_cfg.families))

    ROOT.gROOT.SetBatch(True)
    from . import tasks

    t0 = time.time()
    summary: dict = {"task": runtime_cfg.task}
    if runtime_cfg.task == "analyse":
        result = tasks.analyse(paths.input_filename, paths.analysis_output, runtime_cfg)
        summary["normalization"] = _factors_payload(result)
    elif runtime_cfg.task == "normalize":
        result = tasks.normalize(paths.sums_input, paths.normalized_output, runtime_cfg)
        summary["normalization"] = _factors_payload(result)
    elif runtime_cfg.task == "full_chain":
        tasks.analyse(paths.input_filename, paths.analysis_output, runtime_cfg)
        result = tasks.normalize(paths.analysis_output, paths.normalized_output, runtime_cfg)
        summary["normalization"] = _factors_payload(result)
    else:
        raise ValueError(f"Unsupported task: {runtime_cfg.task}")
    summary["finalized"] = bool(summary.get("normalization"))
    LOGGER.info("Finished run task=%s elapsed_sec=%.2f", runtime_cfg.task, time.time() - t0)
    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Strangeness selection and normalization with PyROOT")
    parser.add_argument("--config", help="Path to TOML config")
    parser.add_argument("--dump-default-config", action="store_true", help="Print default config and exit")
    args = parser.parse_args()

    if args.dump_default_config:
        print(default_config())
        return 0
    if not args.config:
        parser.error("--config is required")

    with open(args.config, "rb") as f:
        cfg = tomllib.load(f)

    merged = s.merge_config(cfg)

    started = datetime.now(timezone.utc)
    status = "success"
    error = ""
    summary: dict = {}
    try:
        summary = run(merged)
        if not summary.get("finalized"):
            status = "not_finalized"
    except Exception as exc:
        status = "failed"
        error = str(exc)
        raise
    finally:
        ended = datetime.now(timezone.utc)
        metadata = {
            "status": status,
            "error": error,
            "started_utc": started.isoformat(),
            "ended_utc": ended.isoformat(),
            "duration_sec": (ended - started).total_seconds(),
            "git_revision": _git_revision(),
            "summary": summary,
            "config": copy.deepcopy(merged),
        }
        try:
            metadata_path = merged.get("paths", {}).get("metadata_output")
            if not metadata_path:
                try:
                    metadata_path = s.current_runtime_config(merged).paths.metadata_output
                except Exception:
                    metadata_path = "run_metadata.json"
            _write_metadata(metadata_path, metadata)
        except Exception as meta_exc:
            LOGGER.error("Failed to write metadata: %s", meta_exc)
    return 0 if status == "success" else 1


if __name__ == "__main__":
    sys.exit(main())
