#!/usr/bin/env python3
import argparse, os, json, glob
import matplotlib.pyplot as plt

def load_runs(pattern):
    runs = []
    for p in sorted(glob.glob(pattern)):
        try:
            with open(p, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            print("Skip", p, ":", e)
            continue
        data["path"] = p
        runs.append(data)
    runs.sort(key=lambda d: d.get("summary", {}).get("workers", 0))
    return runs

def plot_scaling(runs, out_png):
    workers = [r["summary"].get("workers", 0) for r in runs]
    ms = [r["summary"].get("ms_median", 0.0) for r in runs]
    base = ms[0] if ms and ms[0] else None
    fig, ax = plt.subplots()
    ax.plot(workers, ms, marker="o")
    if base:
        for w, m in zip(workers, ms):
            ax.annotate(f"x{base / m:.2f}" if m else "-", (w, m), textcoords="offset points", xytext=(0, 6), ha="center")
    ax.set_xlabel("Workers")
    ax.set_ylabel("Median iteration time (ms)")
    ax.set_title("Sparse RPROP worker scaling")
    fig.tight_layout()
    fig.savefig(out_png, dpi=144)
    print("Saved plot:", out_png)

def plot_objective(runs, out_png):
    fig, ax = plt.subplots()
    for r in runs:
        objs = r.get("series", {}).get("loss", [])
        if objs:
            ax.plot(range(1, len(objs) + 1), objs, label=r["summary"].get("mode", os.path.basename(r["path"])))
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Objective")
    ax.set_yscale("log")
    ax.legend()
    fig.tight_layout()
    fig.savefig(out_png, dpi=144)
    print("Saved plot:", out_png)

def main():
    ap = argparse.ArgumentParser("Plot RPROP benchmark results")
    ap.add_argument("--pattern", default="benchmarks/results/rprop-*.json")
    ap.add_argument("--out-dir", default="benchmarks/plots")
    args = ap.parse_args()
    runs = load_runs(args.pattern)
    if not runs:
        print("No results found for", args.pattern)
        return
    os.makedirs(args.out_dir, exist_ok=True)
    plot_scaling(runs, os.path.join(args.out_dir, "worker_scaling.png"))
    plot_objective(runs, os.path.join(args.out_dir, "objective.png"))

if __name__ == "__main__":
    main()
