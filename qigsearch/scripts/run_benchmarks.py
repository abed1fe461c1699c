#!/usr/bin/env python3
"""
Performance benchmarking for QIG search.
Measures in-process scoring and derivation throughput, plus HTTP latency
of /test-phrase and /batch-test against a running daemon.
"""

import asyncio
import json
import time
from datetime import datetime
from pathlib import Path
from statistics import mean, stdev
from typing import Any, Callable, Dict, List, Optional

import click
import httpx
import psutil
from loguru import logger
from tabulate import tabulate

from qigsearch.daemon.deriver import BrainWalletDeriver
from qigsearch.daemon.phrases import PhraseGenerator
from qigsearch.daemon.scoring import HeuristicScorer


def summarize(operation: str, latencies: List[float], iterations: int, errors: int = 0) -> Dict[str, Any]:
    """Percentile summary of latencies in milliseconds."""
    if not latencies:
        return {"operation": operation, "error": "No successful iterations"}

    ordered = sorted(latencies)
    n = len(ordered)
    return {
        "operation": operation,
        "iterations": iterations,
        "successful": n,
        "errors": errors,
        "p50": ordered[int(n * 0.50)],
        "p95": ordered[int(n * 0.95)],
        "p99": ordered[int(n * 0.99)] if n > 100 else ordered[-1],
        "mean": mean(latencies),
        "min": ordered[0],
        "max": ordered[-1],
        "stdev": stdev(latencies) if n > 1 else 0,
        "per_second": 1000 / mean(latencies) if mean(latencies) > 0 else 0,
    }


class PerformanceBenchmark:
    """Run performance benchmarks in-process and against the daemon."""

    def __init__(self, daemon_url: str = "http://localhost:8766"):
        self.daemon_url = daemon_url
        self.process = psutil.Process()
        self.generator = PhraseGenerator()

    def benchmark_local(self, name: str, fn: Callable[[str], Any], phrases: List[str]) -> Dict[str, Any]:
        """Time ``fn`` over each phrase."""
        logger.info(f"Benchmarking {name} with {len(phrases)} phrases...")
        latencies = []
        for phrase in phrases:
            start = time.perf_counter()
            fn(phrase)
            latencies.append((time.perf_counter() - start) * 1000)
        return summarize(name, latencies, len(phrases))

    async def benchmark_test_phrase(self, phrases: List[str], warmup: int = 5) -> Dict[str, Any]:
        """Benchmark single-phrase evaluation over HTTP."""
        logger.info(f"Benchmarking /test-phrase with {len(phrases)} phrases...")

        latencies = []
        errors = 0

        async with httpx.AsyncClient(base_url=self.daemon_url) as client:
            for phrase in phrases[:warmup]:
                await client.post("/test-phrase", json={"phrase": phrase}, timeout=5.0)

            for i, phrase in enumerate(phrases):
                start = time.perf_counter()
                try:
                    response = await client.post("/test-phrase", json={"phrase": phrase}, timeout=5.0)
                    if response.status_code == 200:
                        latencies.append((time.perf_counter() - start) * 1000)
                    else:
                        errors += 1
                except httpx.HTTPError as e:
                    errors += 1
                    logger.debug(f"test-phrase error: {e}")

                if (i + 1) % 50 == 0:
                    logger.debug(f"  Completed {i + 1}/{len(phrases)} phrases")

        return summarize("test_phrase", latencies, len(phrases), errors)

    async def benchmark_batch(self, phrases: List[str]) -> Dict[str, Any]:
        """Benchmark one /batch-test session, including its chunk yields."""
        logger.info(f"Benchmarking /batch-test with {len(phrases)} phrases...")

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(base_url=self.daemon_url) as client:
                response = await client.post("/batch-test", json={"phrases": phrases}, timeout=None)
        except httpx.HTTPError as e:
            logger.error(f"Batch benchmark failed: {e}")
            return {"operation": "batch_test", "error": str(e)}

        elapsed = time.perf_counter() - start
        if response.status_code != 200:
            return {"operation": "batch_test", "error": f"status {response.status_code}"}

        data = response.json()
        tested = data.get("tested", len(phrases))
        return {
            "operation": "batch_test",
            "phrases": len(phrases),
            "tested": tested,
            "high_phi": data.get("highPhiCandidates", 0),
            "time_seconds": elapsed,
            "phrases_per_second": tested / elapsed if elapsed > 0 else 0,
        }

    def measure_resources(self) -> Dict[str, Any]:
        """Measure current resource usage."""
        try:
            memory_info = self.process.memory_info()
            return {
                "memory_mb": memory_info.rss / 1024 / 1024,
                "cpu_percent": self.process.cpu_percent(interval=1),
                "num_threads": self.process.num_threads()
            }
        except psutil.Error as e:
            logger.error(f"Resource measurement failed: {e}")
            return {}

    async def run_full_benchmark(self, iterations: int, batch_size: int, local_only: bool) -> Dict[str, Any]:
        phrases = [self.generator.generate() for _ in range(iterations)]
        results = {
            "timestamp": datetime.utcnow().isoformat(),
            "iterations": iterations,
            "resources_before": self.measure_resources(),
        }

        results["score"] = self.benchmark_local("score", HeuristicScorer().score, phrases)
        results["derive"] = self.benchmark_local("derive", BrainWalletDeriver().derive, phrases)

        if not local_only:
            results["test_phrase"] = await self.benchmark_test_phrase(phrases)
            batch = [self.generator.generate() for _ in range(batch_size)]
            results["batch_test"] = await self.benchmark_batch(batch)

        results["resources_after"] = self.measure_resources()
        return results

    def generate_report(self, results: Dict[str, Any], output_path: Path) -> None:
        """Write a markdown report and the raw JSON next to it."""
        report = ["# QIG Search Benchmark Report", f"\n**Date:** {results['timestamp']}", ""]

        rows = [["Operation", "p50 (ms)", "p95 (ms)", "Mean (ms)", "Per second", "Errors"]]
        for key in ("score", "derive", "test_phrase"):
            r = results.get(key)
            if not r or "error" in r:
                continue
            rows.append([
                key,
                f"{r['p50']:.3f}",
                f"{r['p95']:.3f}",
                f"{r['mean']:.3f}",
                f"{r['per_second']:.0f}",
                r["errors"],
            ])
        report.append("## Latency")
        report.append("")
        report.append(tabulate(rows, headers="firstrow", tablefmt="github"))
        report.append("")

        batch = results.get("batch_test")
        if batch and "error" not in batch:
            report.append("## Batch Session")
            report.append("")
            report.append(tabulate([
                ["Metric", "Value"],
                ["Phrases", batch["phrases"]],
                ["Tested", batch["tested"]],
                ["High-phi", batch["high_phi"]],
                ["Time", f"{batch['time_seconds']:.2f} s"],
                ["Throughput", f"{batch['phrases_per_second']:.1f} phrases/s"],
            ], headers="firstrow", tablefmt="github"))
            report.append("")

        res = results.get("resources_after", {})
        report.append("## Resource Usage")
        report.append("")
        report.append(tabulate([
            ["Metric", "Value"],
            ["Memory", f"{res.get('memory_mb', 0):.1f} MB"],
            ["CPU", f"{res.get('cpu_percent', 0):.1f}%"],
            ["Threads", f"{res.get('num_threads', 0)}"],
        ], headers="firstrow", tablefmt="github"))

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            f.write("\n".join(report))
        logger.success(f"Report written to {output_path}")

        with open(output_path.with_suffix('.json'), 'w') as f:
            json.dump(results, f, indent=2, default=str)


@click.command()
@click.option("--iterations", default=200, help="Phrases per latency benchmark")
@click.option("--batch-size", default=100, help="Phrases in the batch-test session")
@click.option("--local-only", is_flag=True, help="Skip the HTTP benchmarks")
@click.option("--out", type=click.Path(),
              help="Output report path (default: benchmarks/YYYY-MM-DD.md)")
@click.option("--daemon-url", default="http://localhost:8766", help="Daemon API URL")
def main(iterations: int, batch_size: int, local_only: bool, out: Optional[str], daemon_url: str):
    """Run performance benchmarks."""
    out_path = Path(out) if out else Path("benchmarks") / f"{datetime.now().strftime('%Y-%m-%d')}.md"

    if not local_only:
        try:
            response = httpx.get(f"{daemon_url}/health", timeout=2.0)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Cannot reach daemon at {daemon_url}: {e}")
            logger.info("Start the daemon with: qig daemon start, or pass --local-only")
            return

    benchmark = PerformanceBenchmark(daemon_url)
    results = asyncio.run(benchmark.run_full_benchmark(iterations, batch_size, local_only))
    benchmark.generate_report(results, out_path)


if __name__ == "__main__":
    main()
