"""
ConcreteLab Analytics — End-to-end analytics pipeline.

Runs the full pipeline from a lab workbook to dashboard-ready outputs and
prints smoke-test summaries. Without a workbook path, a simulated workbook
is generated.

Usage:
    python main.py [path/to/workbook.xlsx]
"""

import asyncio
import logging
import sys
from pathlib import Path

import pandas as pd

from concrete_lab.config import DEFAULT_WORKBOOK_FILE, STORE_PATH, WILDCARD
from concrete_lab.dashboard import get_design_view, get_executive_view, get_quality_view
from concrete_lab.filters import MATCH_ALL, get_filter_options, normalize_filter
from concrete_lab.loaders import IngestionError
from concrete_lab.session import LabSession
from concrete_lab.simulator import generate_workbook
from concrete_lab.store import BlobStore, SampleStore

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _read_input(argv: list[str]) -> tuple[bytes, str]:
    if len(argv) > 1:
        path = Path(argv[1])
        return path.read_bytes(), str(path)
    if DEFAULT_WORKBOOK_FILE.exists():
        return DEFAULT_WORKBOOK_FILE.read_bytes(), str(DEFAULT_WORKBOOK_FILE)
    return generate_workbook(), "simulated workbook"


async def run(argv: list[str]) -> int:
    """Run the full analytics pipeline and print smoke-test outputs."""

    print("=" * 70)
    print("  CONCRETELAB ANALYTICS — Concrete Quality Dashboard")
    print("  Analytics Pipeline Smoke Test")
    print("=" * 70)
    print()

    # ------------------------------------------------------------------
    # 1. Ingest and persist
    # ------------------------------------------------------------------
    print("[ 1 ] LOADING SOURCE DATA")
    print("-" * 40)

    data, source = _read_input(argv)
    session = LabSession(SampleStore(BlobStore(STORE_PATH)))

    try:
        result = await session.upload(data)
    except IngestionError as e:
        logger.error("Ingestion failed for %s: %s", source, e)
        return 1

    samples = session.samples
    print(f"\nSource: {source}")
    print(f"Sheets processed: {', '.join(result.sheets_processed)}")
    print(f"Samples: {len(samples)} | blank rows skipped: {result.skipped_rows} "
          f"| invalid rows dropped: {result.dropped_rows} | coerced fields: {len(result.warnings)}")
    print(samples[["id", "month_label", "client", "design_type", "test_age",
                   "design_strength", "rupture_strength"]].head(10).to_string(index=False))

    restored = await session.restore()
    print(f"\nRestored from local store: {len(restored)} samples")

    # ------------------------------------------------------------------
    # 2. Executive view
    # ------------------------------------------------------------------
    print("\n")
    print("[ 2 ] EXECUTIVE SUMMARY")
    print("-" * 40)

    executive = get_executive_view(samples, MATCH_ALL)
    for key, value in executive["summary"].items():
        print(f"  {key:18s} | {value:.2f}" if isinstance(value, float) else f"  {key:18s} | {value}")

    print("\nMonthly evolution:")
    print(executive["monthly"].to_string(index=False))
    print("\nCompliance by design (top 10):")
    print(executive["design_compliance"].to_string(index=False))
    print("\nClient performance (top 10):")
    print(executive["client_performance"].to_string(index=False))

    # ------------------------------------------------------------------
    # 3. Design and quality views
    # ------------------------------------------------------------------
    print("\n")
    print("[ 3 ] DESIGN & QUALITY VIEWS")
    print("-" * 40)

    options = get_filter_options(samples)
    print(f"\nDesigns: {options['designs']}")
    design_view = get_design_view(samples, MATCH_ALL)
    print(f"\nDesign '{design_view['design']}': {design_view['stats']}")
    print(design_view["evolution"].to_string(index=False))

    quality = get_quality_view(samples, MATCH_ALL)
    limits = quality["limits"]
    if limits is None:
        print("\nNot enough samples for statistical control")
    else:
        print(f"\nControl limits: mean={limits.mean:.1f} sigma={limits.std_dev:.1f} "
              f"UCL={limits.upper:.1f} LCL={limits.lower:.1f}")
        print(f"Out-of-control points: {int(quality['chart']['out_of_control'].sum())}")
    print(f"Non-conformities: {len(quality['non_conformities'])}")

    # ------------------------------------------------------------------
    # 4. Acceptance checks
    # ------------------------------------------------------------------
    print("\n")
    print("[ 4 ] ACCEPTANCE CRITERIA CHECKS")
    print("-" * 40)

    check1 = bool((samples["rupture_strength"] > 1).all()) and samples["id"].is_unique
    print(f"\n  [{'PASS' if check1 else 'FAIL'}] All samples valid with unique ids")

    check2 = len(restored) == len(samples)
    print(f"  [{'PASS' if check2 else 'FAIL'}] Store round-trip kept {len(restored)} of {len(samples)} samples")

    first_client = options["clients"][0] if options["clients"] else WILDCARD
    predicate = normalize_filter({"client": first_client})
    narrowed = get_executive_view(samples, predicate)["sample_count"]
    expected = int((samples["client"] == first_client).sum()) if first_client != WILDCARD else len(samples)
    check3 = narrowed == expected
    print(f"  [{'PASS' if check3 else 'FAIL'}] Client filter '{first_client}' keeps {narrowed} samples")

    print("\n" + "=" * 70)
    print("  Pipeline complete.")
    print("=" * 70)
    return 0


def main() -> None:
    pd.set_option("display.width", 140)
    sys.exit(asyncio.run(run(sys.argv)))


if __name__ == "__main__":
    main()
