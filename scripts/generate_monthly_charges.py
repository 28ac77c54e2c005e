"""Generate a month's recurring charges for one or more centers."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Create missing recurring charges in public.charges.",
    )
    parser.add_argument(
        "center_ids",
        nargs="+",
        help="Center id(s) to bill.",
    )
    parser.add_argument(
        "--period",
        type=str,
        default=None,
        help="Period key YYYY-MM (default: current local month).",
    )
    return parser.parse_args()


def generate(center_ids: Sequence[str], period_key: str | None) -> list[dict]:
    """Run the generator for every center and return one result per center."""
    from app.services.generation_service import GenerationService
    from app.utils.period import current_period, parse_key
    from app.utils.supabase_client import get_service_client

    if period_key is None:
        period = current_period()
    else:
        period = parse_key(period_key)
        if period is None:
            raise ValueError(f"invalid period key: {period_key!r}")

    service = GenerationService(get_service_client())
    results = []
    for center_id in center_ids:
        result = service.generate(center_id, period)
        results.append({"center_id": center_id, **result})
    return results


def print_results(results: Sequence[dict]) -> None:
    """Print one summary line per center."""
    for result in results:
        print(
            f"{result['center_id']} {result['period_key']}: "
            f"created={result['created']} skipped={result['skipped']}"
        )


def main() -> None:
    """CLI entry point."""
    args = parse_args()
    print_results(generate(args.center_ids, args.period))


if __name__ == "__main__":
    main()
