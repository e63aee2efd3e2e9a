"""
Benchmark: Response Planning

Measures throughput of allocation, demographic alignment and payload
compilation without submitting anything.
"""

import argparse
import json
import platform
import random
import sys
import time
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "packages" / "core"))

from formsynth import FormQuestion, build_plan
from formsynth.audit import audit_plan


def demo_questions() -> list:
    """A typical demographic survey."""
    return [
        FormQuestion(id="name", entry_id="1", title="Full Name", type="SHORT_ANSWER", required=True),
        FormQuestion(id="age", entry_id="2", title="Age group", type="MULTIPLE_CHOICE", options=[
            {"value": "Under 18", "weight": 10}, {"value": "18-24", "weight": 35},
            {"value": "25-34", "weight": 30}, {"value": "35-44", "weight": 15}, {"value": "60+", "weight": 10},
        ]),
        FormQuestion(id="job", entry_id="3", title="Occupation", type="MULTIPLE_CHOICE", options=[
            {"value": "Student", "weight": 40}, {"value": "Employed", "weight": 35},
            {"value": "Business Owner", "weight": 10}, {"value": "Retired", "weight": 15},
        ]),
        FormQuestion(id="edu", entry_id="4", title="Highest education", type="DROPDOWN", options=[
            {"value": "High school", "weight": 30}, {"value": "Bachelor's degree", "weight": 50},
            {"value": "Master's degree", "weight": 20},
        ]),
        FormQuestion(id="inc", entry_id="5", title="Monthly income", type="MULTIPLE_CHOICE", options=[
            {"value": "No income", "weight": 35}, {"value": "₹10,000 - ₹25,000", "weight": 25},
            {"value": "₹25,000 - ₹50,000", "weight": 25}, {"value": "Above 1 lakh", "weight": 15},
        ]),
        FormQuestion(id="tools", entry_id="6", title="Which tools do you use?", type="CHECKBOXES", options=[
            {"value": "Email", "weight": 60}, {"value": "Chat", "weight": 30}, {"value": "Video", "weight": 10},
        ]),
    ]


def benchmark_plan(n: int, seed: int = 42) -> dict:
    """Benchmark a full plan build for ``n`` rows."""
    questions = demo_questions()

    start = time.perf_counter()
    plan = build_plan(questions, n, names=["Asha Rao"], rng=random.Random(seed))
    elapsed = time.perf_counter() - start

    report = audit_plan(questions, plan.decks, plan.aligned, plan.roles)
    return {
        "operation": "plan",
        "count": n,
        "elapsed_seconds": elapsed,
        "throughput": n / elapsed,
        "latency_ms": (elapsed / n) * 1000,
        "implausible_rows": report.implausible_rows,
    }


def get_system_info() -> dict:
    """Get system information for reproducibility."""
    return {
        "platform": platform.platform(),
        "python_version": platform.python_version(),
    }


def main():
    parser = argparse.ArgumentParser(description="Benchmark response planning")
    parser.add_argument("--count", type=int, default=2000, help="Number of rows")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--output", type=str, help="Output file for results")
    parser.add_argument("--format", choices=["json", "text"], default="text")

    args = parser.parse_args()

    results = {
        "benchmark": "planning",
        "timestamp": datetime.now().isoformat(),
        "system": get_system_info(),
        "tests": [
            benchmark_plan(max(1, args.count // 10), args.seed),
            benchmark_plan(args.count, args.seed),
        ],
    }

    if args.format == "json":
        output = json.dumps(results, indent=2)
    else:
        lines = [
            "Planning Benchmark",
            "==================",
            f"Timestamp: {results['timestamp']}",
            f"Python: {results['system']['python_version']}",
            "",
        ]
        for test in results["tests"]:
            lines.extend([
                f"Operation: {test['operation']}",
                f"  Count: {test['count']:,}",
                f"  Time: {test['elapsed_seconds']:.3f}s",
                f"  Throughput: {test['throughput']:,.0f} rows/sec",
                f"  Implausible rows: {test['implausible_rows']}",
                "",
            ])
        output = "\n".join(lines)

    print(output)

    if args.output:
        with open(args.output, 'w') as f:
            f.write(output)
        print(f"Results saved to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
