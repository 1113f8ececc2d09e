#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path

from app.models import BUSINESSES, PRODUCTS
from app.record_store import PersistenceFailure, QdrantRecordStore


def load_env_file(path: Path) -> dict:
    env = {}
    if not path.exists():
        return env
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        env[key.strip()] = value.strip().strip('"')
    return env


async def seed(store: QdrantRecordStore, catalog: dict) -> tuple[int, int]:
    await store.ensure_all()
    businesses = 0
    products = 0
    for business in catalog.get("businesses", []):
        if not business.get("email_support"):
            print(f"WARNING: business {business.get('id')} has no support email; skipped")
            continue
        await store.create(BUSINESSES, business)
        businesses += 1
    for product in catalog.get("products", []):
        await store.create(PRODUCTS, product)
        products += 1
    return businesses, products


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--env", default="infra/.env")
    parser.add_argument("--catalog", default="data/catalog.json")
    args = parser.parse_args()

    env = load_env_file(Path(args.env))
    qdrant_url = os.getenv("QDRANT_URL") or env.get("QDRANT_URL", "http://localhost:6333")
    prefix = os.getenv("QDRANT_COLLECTION_PREFIX") or env.get("QDRANT_COLLECTION_PREFIX", "product_support")

    catalog_path = Path(args.catalog)
    if not catalog_path.exists():
        print(f"ERROR: catalog file not found: {catalog_path}")
        return 1
    catalog = json.loads(catalog_path.read_text(encoding="utf-8"))

    store = QdrantRecordStore(url=qdrant_url, collection_prefix=prefix)
    try:
        businesses, products = asyncio.run(seed(store, catalog))
    except PersistenceFailure as exc:
        print(f"ERROR: record store unavailable at {qdrant_url}: {exc}")
        return 1

    print(f"Collections ready under prefix '{prefix}'.")
    print(f"Seeded {businesses} businesses, {products} products.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
