# -*- coding: utf-8 -*-
"""
Specs Index Benchmark - Coverage Report

Builds the specs index from the configured record source and image root and
reports how the records were reconciled:
1. which matcher resolved each generation (exact / substring / token score /
   synthesized model)
2. how many models have a representative image
3. how much the alias and image backfill passes recovered

Writes one CSV row per model plus a console summary.

Usage:
    python -m benchmark.run_benchmark [--records FILE] [--images DIR]
"""
import argparse
import csv
import os
import sys
import time
from datetime import datetime
from typing import Dict, List

# Add parent directory to path so we can import project modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
from record_source import ImageLibrary, load_records
from specs_index import SpecsIndex, build_index, image_src

OUTPUT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)))

OUTPUT_COLUMNS = [
    'brand_key', 'brand', 'model_key', 'model', 'source', 'years',
    'generations', 'generations_with_image', 'generations_with_local_image',
    'has_representative_image', 'representative_image',
]


def model_rows(index: SpecsIndex) -> List[Dict]:
    """One report row per model of the index."""
    rows = []
    for brand in index.brands:
        for model in brand.models:
            rows.append({
                'brand_key': brand.key,
                'brand': brand.name,
                'model_key': model.key,
                'model': model.name,
                'source': model.source,
                'years': model.years,
                'generations': len(model.generations),
                'generations_with_image': sum(1 for gen in model.generations if gen.image.has_image()),
                'generations_with_local_image': sum(1 for gen in model.generations if gen.image.local),
                'has_representative_image': model.representative_image is not None,
                'representative_image': image_src(model.representative_image) or '',
            })
    return rows


def summarize(index: SpecsIndex, rows: List[Dict]) -> Dict:
    """Aggregate counts for the console summary."""
    total_models = len(rows)
    return {
        'brands': len(index.brands),
        'brands_with_models': len(index.brands_with_models()),
        'models': total_models,
        'models_from_records': sum(1 for r in rows if r['source'] == 'model'),
        'models_synthesized': sum(1 for r in rows if r['source'] == 'generation'),
        'models_with_image': sum(1 for r in rows if r['has_representative_image']),
        'models_without_generations': sum(1 for r in rows if r['generations'] == 0),
        'generations': sum(r['generations'] for r in rows),
    }


def pct(part: int, total: int) -> str:
    return f"{part / total * 100:.1f}%" if total else "n/a"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Specs index coverage report")
    parser.add_argument('--records', help="JSONL records file (default: configured source)")
    parser.add_argument('--images', default=config.SPECS_IMAGE_ROOT, help="Specs image root")
    parser.add_argument('--output-dir', default=OUTPUT_DIR, help="Where to write the CSV")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    print("=" * 70)
    print("Specs Index Benchmark - Coverage Report")
    print("=" * 70)

    start_time = time.time()

    print("\n[1/3] Loading records...")
    records = load_records(paths=[args.records]) if args.records else load_records()
    if not records:
        print("ERROR: No records loaded. Check the records file or source configuration.")
        sys.exit(1)
    print(f"  Records: {len(records):,}")

    print("\n[2/3] Building index...")
    index = build_index(records, ImageLibrary(args.images))
    rows = model_rows(index)

    timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    output_path = os.path.join(args.output_dir, f"specs_coverage_{timestamp}.csv")

    print("\n[3/3] Writing output CSV...")
    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=OUTPUT_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    print(f"  Output: {output_path}")

    # --- Summary stats ---
    summary = summarize(index, rows)
    stats = index.stats
    models = summary['models']
    generations = summary['generations']

    print("\n" + "=" * 70)
    print("SUMMARY")
    print("=" * 70)

    print(f"\nBrands:               {summary['brands']} ({summary['brands_with_models']} with models)")
    print(f"Models:               {models}")
    print(f"  from Model rows:    {summary['models_from_records']} ({pct(summary['models_from_records'], models)})")
    print(f"  synthesized:        {summary['models_synthesized']} ({pct(summary['models_synthesized'], models)})")
    print(f"  with image:         {summary['models_with_image']} ({pct(summary['models_with_image'], models)})")
    print(f"  no generations:     {summary['models_without_generations']}")
    print(f"Generations:          {generations}")

    matched = stats.get('matched', {})
    matched_total = sum(matched.values())
    print("\nGeneration matching:")
    for name in ('exact', 'substring', 'token_score', 'synthesized'):
        count = matched.get(name, 0)
        print(f"  {name:<15} {count:>6} ({pct(count, matched_total)})")

    print("\nBackfill passes:")
    print(f"  duplicates dropped:   {stats.get('duplicates', 0)}")
    print(f"  alias backfilled:     {stats.get('alias_backfilled', 0)}")
    print(f"  image synthesized:    {stats.get('image_synthesized', 0)}")
    print(f"  image backfilled:     {stats.get('image_backfilled', 0)}")

    print(f"\nDone! Total time: {time.time() - start_time:.1f}s")


if __name__ == "__main__":
    main()
