#!/usr/bin/env python3
import argparse, os, json, time, statistics, logging
from datetime import datetime
import torch

# Minimal local import (assumes 'pip install -e .' or PYTHONPATH set to src/)
from sparse_rprop import LinearModel, LogisticOracle, ProgressReporter, RpropConfig, RpropTrainer

def make_problem(n_samples=4000, n_features=20000, informative=50, density=0.01, seed=0):
    gen = torch.Generator().manual_seed(seed)
    x = torch.randn(n_samples, n_features, generator=gen, dtype=torch.float64)
    x *= (torch.rand(n_samples, n_features, generator=gen) < density).to(torch.float64)
    w = torch.zeros(n_features, dtype=torch.float64)
    w[:informative] = torch.randn(informative, generator=gen, dtype=torch.float64) * 3.0
    y = (x @ w > 0.0).to(torch.float64)
    return x, y

def run(workers: int, oracle, n_features: int, iters=30, rho1=0.5):
    cfg = RpropConfig(rho1=rho1, max_iter=iters, n_workers=workers, stop_window=0)
    model = LinearModel(n_features, cfg)
    reporter = ProgressReporter(cfg)
    t0 = time.perf_counter()
    outcome = RpropTrainer(oracle, reporter=reporter).run(model)
    wall = time.perf_counter() - t0
    ms = [1000.0 * r.iter_s for r in reporter.history[1:]]
    objs = [r.objective for r in reporter.history]

    summary = dict(mode=f"w{workers}", workers=workers, iters=len(reporter.history), outcome=outcome.value,
                   ms_median=statistics.median(ms) if ms else 0.0, ms_mean=sum(ms)/len(ms) if ms else 0.0,
                   wall_s=wall, obj_last=objs[-1] if objs else None, active=model.active_features())

    ts = datetime.now().strftime("%Y%m%d-%H%M%S")
    out_dir = os.path.join("benchmarks", "results"); os.makedirs(out_dir, exist_ok=True)
    out_path = os.path.join(out_dir, f"rprop-w{workers}-{ts}.json")
    with open(out_path, "w") as f: json.dump(dict(summary=summary, series=dict(ms=ms, loss=objs)), f, indent=2)
    print(json.dumps(summary, indent=2))
    print("Saved:", out_path)
    return out_path

def main():
    ap = argparse.ArgumentParser("sparse RPROP worker scaling")
    ap.add_argument("--samples", type=int, default=4000)
    ap.add_argument("--features", type=int, default=20000)
    ap.add_argument("--iters", type=int, default=30)
    ap.add_argument("--rho1", type=float, default=0.5)
    ap.add_argument("--workers", type=int, nargs="+", default=[1, 2, 4, 8])
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(message)s")

    x, y = make_problem(args.samples, args.features)
    oracle = LogisticOracle(x, y)
    for w in args.workers:
        run(w, oracle, args.features, iters=args.iters, rho1=args.rho1)

if __name__ == "__main__":
    main()
