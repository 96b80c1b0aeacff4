# -*- coding: utf-8 -*-
"""
Compare the two logo tiering strategies.

Strategy A: percentile buckets (group_logos_by_tier) - equal counts per tier
Strategy B: absolute score (get_logo_tier_id) - score normalized to [-20, 120]

Measures how often they disagree on the same logo and by how many levels.

Usage:
    python experiments/compare_tiering.py [--dataset-root DIR] [--output FILE] [--tiers N]
"""

import argparse
import json
import os
import sys
from collections import Counter
from typing import Dict, List

# Add parent directory to path for imports (script is in experiments/ subfolder)
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
from logo_tiers import get_logo_tier_id, group_logos_by_tier, popularity_score
from logos import Logo, load_logos


def tier_level(tier_id: str) -> int:
    return int(tier_id.rsplit('-', 1)[1])


def compare(logos: List[Logo], tier_count: int) -> List[Dict]:
    """One row per logo with both tier assignments."""
    percentile_tier = {}
    for tier_id, members in group_logos_by_tier(logos, tier_count).items():
        for logo in members:
            percentile_tier[logo.slug] = tier_id

    rows = []
    for logo in logos:
        by_percentile = percentile_tier[logo.slug]
        by_score = get_logo_tier_id(logo, tier_count)
        rows.append({
            'slug': logo.slug,
            'name': logo.name,
            'score': round(popularity_score(logo), 2),
            'percentile_tier': by_percentile,
            'score_tier': by_score,
            'delta': tier_level(by_score) - tier_level(by_percentile),
        })
    return rows


def main():
    parser = argparse.ArgumentParser(description="Compare percentile and absolute-score logo tiers")
    parser.add_argument('--dataset-root', default=config.LOGO_DATASET_ROOT, help="car-logos-dataset root")
    parser.add_argument('--tiers', type=int, default=config.TIER_COUNT, help="Number of tiers")
    parser.add_argument('--output', help="Optional JSON output file for the per-logo rows")
    args = parser.parse_args()

    logos = load_logos(args.dataset_root)
    if not logos:
        print("ERROR: No logos loaded.")
        sys.exit(1)

    rows = compare(logos, args.tiers)
    agree = sum(1 for row in rows if row['delta'] == 0)
    deltas = Counter(row['delta'] for row in rows)

    print(f"Logos compared:    {len(rows)}")
    print(f"Same tier:         {agree} ({agree / len(rows) * 100:.1f}%)")
    print("\nLevel difference (score tier - percentile tier):")
    for delta in sorted(deltas):
        print(f"  {delta:+d}  {deltas[delta]:>5}")

    worst = sorted(rows, key=lambda row: -abs(row['delta']))[:10]
    print("\nLargest disagreements:")
    for row in worst:
        print(f"  {row['name']:<30} score={row['score']:>7} "
              f"percentile={row['percentile_tier']} score_tier={row['score_tier']}")

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(rows, f, indent=2, ensure_ascii=False)
        print(f"\nRows written to {args.output}")


if __name__ == "__main__":
    main()
