from __future__ import annotations

import argparse
import logging
from dataclasses import replace

from feedline_sim.config import Config, parse_duration
from feedline_sim.logging_config import configure_logging
from feedline_sim.sim import FeedLineSimulator
from feedline_sim.stats import compute_stats


def main():
    ap = argparse.ArgumentParser(description="Headless material-feeding line simulation.")
    ap.add_argument("--config", type=str, default=None, help="YAML config (see example_config.yaml).")
    ap.add_argument(
        "--logic",
        type=str,
        default=None,
        choices=["RR", "RoundRobin", "Batch"],
        help="Override the distribution logic.",
    )
    ap.add_argument("--duration", type=str, default="01:00", help="Simulated time as MM:SS.")
    ap.add_argument("--speed", type=float, default=None, help="Override the time-scale multiplier.")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument(
        "--stats",
        action="store_true",
        help="Compute a statistics row over the configured stats duration instead of a stepped run.",
    )
    ap.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARNING, ... (default: $LOG_LEVEL)")
    args = ap.parse_args()

    level = getattr(logging, args.log_level.upper(), None) if args.log_level else None
    configure_logging(level=level)

    cfg = Config.from_yaml(args.config) if args.config else Config()
    line = cfg.line
    if args.logic is not None:
        line = replace(line, logic=args.logic)
    if args.speed is not None:
        line = replace(line, speed=args.speed)
    line = line.validate()
    seed = args.seed if args.seed is not None else cfg.run.seed

    if args.stats:
        row = compute_stats(line, cfg.run.stats_duration_ms, path_count=cfg.run.path_count, seed=seed)
        print(f"duration={row.duration_text} stops={row.source_stops} ok={row.total_processed} miss={row.total_missed}")
        print(
            f"logic={row.logic.value} ppm={row.ppm:g} min_cap={row.min_cap:g} max_cap={row.max_cap:g} "
            f"prob_global={row.prob_global:g}% path_speed={row.path_speed:g}"
        )
        return

    system = FeedLineSimulator(line, path_count=cfg.run.path_count, seed=seed)
    system.run(parse_duration(args.duration))

    snap = system.snapshot()
    print("\n=== DONE ===")
    secs = int(snap.elapsed_sim_time // 1000)
    print(f"time={secs // 60:02d}:{secs % 60:02d} source={snap.source_state.value} stops={snap.source_stops}")
    for p in snap.paths:
        print(
            f"path {p.path_id}: ok={p.processed_units} miss={p.missed_units} sent={p.units_sent} "
            f"queued={len(p.units)} request={p.request_material} downtime={p.total_downtime / 1000:.1f}s"
        )


if __name__ == "__main__":
    main()
