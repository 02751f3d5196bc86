"""
Surface Analytics Dataset Generator
Writes a synthetic product catalog and session documents as NDJSON.
"""

import argparse
from dataclasses import asdict
from pathlib import Path

import polars as pl

from surface_analytics.data.generators import ProductCatalogGenerator, SessionEventGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"


def main(args: argparse.Namespace) -> None:
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print(f"📊 Generating {args.products:,} products...")
    catalog = ProductCatalogGenerator(seed=args.seed).generate(args.products)
    products = pl.DataFrame([asdict(entry) for entry in catalog])
    products.write_ndjson(output_dir / "products.ndjson")
    print(f"   ✅ products.ndjson: {products.height:,} rows")

    print(f"📊 Generating {args.sessions:,} sessions for {args.users:,} users...")
    documents = SessionEventGenerator(catalog, seed=args.seed).generate(
        n=args.sessions, users=args.users, days=args.days
    )
    sessions = pl.DataFrame(documents, infer_schema_length=None)
    sessions.write_ndjson(output_dir / "sessions.ndjson")
    print(f"   ✅ sessions.ndjson: {sessions.height:,} rows")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate synthetic surface analytics data")
    parser.add_argument("--sessions", type=int, default=20000)
    parser.add_argument("--users", type=int, default=3000)
    parser.add_argument("--products", type=int, default=500)
    parser.add_argument("--days", type=int, default=120)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output-dir", default=str(OUTPUT_DIR))
    main(parser.parse_args())
