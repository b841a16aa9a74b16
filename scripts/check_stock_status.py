#!/usr/bin/env python3
"""
Check stock status for a business - on-hand quantities and low-stock items.

Usage:
    python scripts/check_stock_status.py --business-id <uuid>
    python scripts/check_stock_status.py --business-id <uuid> --low-only
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging import configure_logging
from domain.errors import SalesPlatformError
from repositories.stock_repository import list_low_stock_items, list_stock_items


def check_stock_status(business_id: str, low_only: bool = False) -> int:
    """Print the catalog (or only low-stock items) of one business."""

    items = list_low_stock_items(business_id) if low_only else list_stock_items(business_id)
    low_count = sum(1 for item in items if item.is_low_stock)

    print("=" * 60)
    print("STOCK STATUS" + (" (LOW STOCK ONLY)" if low_only else ""))
    print("=" * 60)
    print(f"Items:                 {len(items)}")
    print(f"At or below reorder:   {low_count}")
    print(f"Out of stock:          {sum(1 for item in items if item.quantity == 0)}")
    print("-" * 60)

    for item in items:
        flag = "  LOW" if item.is_low_stock else ""
        print(f"{item.name[:30]:<30} {item.quantity:>10} {item.unit_label:<8} @ {item.unit_price:>8}{flag}")

    print("=" * 60)
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Print stock status for a business")
    parser.add_argument("--business-id", "-b", required=True, help="Business (sme) id")
    parser.add_argument("--low-only", action="store_true", help="Only show items at or below reorder level")
    args = parser.parse_args()

    configure_logging()
    try:
        return check_stock_status(args.business_id, low_only=args.low_only)
    except SalesPlatformError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
