"""
CLI entry point for running throughput benchmarks.

Usage:
    python -m benchmarks.run_benchmark                      # 100 jobs, one round
    python -m benchmarks.run_benchmark --num-jobs 500       # more jobs
    python -m benchmarks.run_benchmark --rounds 3           # repeat and compare

Prerequisites:
    API + at least one worker process running
"""

import argparse
import json
import time

from benchmarks.throughput import ThroughputBenchmark


def main():
    parser = argparse.ArgumentParser(description="Job Queue Throughput Benchmark")
    parser.add_argument(
        "--num-jobs", type=int, default=100,
        help="Number of jobs to submit per round (default: 100)",
    )
    parser.add_argument(
        "--rounds", type=int, default=1,
        help="How many times to repeat the benchmark (default: 1)",
    )
    parser.add_argument(
        "--base-url", type=str, default="http://localhost:8000",
        help="API base URL (default: http://localhost:8000)",
    )
    args = parser.parse_args()

    print("=== Job Queue Throughput Benchmark ===")
    print(f"Jobs: {args.num_jobs} | Rounds: {args.rounds}\n")

    bench = ThroughputBenchmark(base_url=args.base_url, num_jobs=args.num_jobs)

    results = []
    for i in range(args.rounds):
        print(f"--- Round {i + 1} ---")
        results.append(bench.run())
        time.sleep(2)  # cooldown between rounds

    print("\n=== RESULTS ===")
    print(json.dumps(results, indent=2))

    # Summary table
    print("\n{:<8} {:>10} {:>15}".format("Round", "Time (s)", "Throughput"))
    print("-" * 35)
    for i, r in enumerate(results, start=1):
        print("{:<8} {:>10.3f} {:>12.2f} j/s".format(
            i, r["wall_clock_sec"], r["throughput_jobs_per_sec"]
        ))


if __name__ == "__main__":
    main()
