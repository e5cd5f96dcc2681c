#!/usr/bin/env python3
"""Seed demo players, parcels and treasures into a running Property Store.

Usage:
    # Start the development store first:
    uvicorn landgrid.store.app:create_app --factory --port 3001

    # Seed demo data:
    python3 scripts/seed_demo_land.py

    # Seed against a different host:
    python3 scripts/seed_demo_land.py --base-url http://localhost:9000

    # Clear demo data: restart the server, the registry is in memory.

All data goes through the public API, so purchases are validated and
charged exactly as a player's would be.

Data created:
    - 3 players with the starting balance
    - 4 parcels around Times Square, one of them listed for sale
    - 2 treasures, one inside an unowned block
    - 1 active bid on the listed parcel
"""

from __future__ import annotations

import argparse
import sys
import uuid
from datetime import datetime, timedelta, timezone

import httpx

from landgrid.grid import CellId, GridAddressor, serialize

DEFAULT_BASE_URL = "http://localhost:3001"

ORIGIN = (-73.9855, 40.7580)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def api(
    client: httpx.Client,
    method: str,
    path: str,
    *,
    json: dict | None = None,
    params: dict | None = None,
    user: str | None = None,
) -> dict | list | None:
    """Make an API call and return parsed JSON, or None on failure."""
    headers = {}
    if user:
        headers["Authorization"] = f"Bearer {user}"

    resp = client.request(method, path, json=json, params=params, headers=headers)
    if resp.status_code >= 400:
        print(f"  FAILED {method} {path} -> {resp.status_code}: {resp.text[:200]}")
        return None
    if resp.headers.get("content-type", "").startswith("application/json"):
        return resp.json()
    return None


def section(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


def block(addressor: GridAddressor, col: int, row: int, width: int, height: int) -> list[str]:
    """Cells of a width x height block offset from ORIGIN by (col, row) cells."""
    base = addressor.cell_id_of(*ORIGIN)
    return [
        serialize(CellId(lng_index=base.lng_index + col + dx, lat_index=base.lat_index + row + dy))
        for dx in range(width)
        for dy in range(height)
    ]


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------

DEMO_PLAYERS = [
    {"uid": "demo-alice", "email": "alice@example.com", "name": "Alice"},
    {"uid": "demo-bob", "email": "bob@example.com", "name": "Bob"},
    {"uid": "demo-carol", "email": "carol@example.com", "name": "Carol"},
]


def seed_players(client: httpx.Client) -> list[str]:
    section("Players")
    uids = []
    for player in DEMO_PLAYERS:
        result = api(client, "POST", "/api/users", json=player, user=player["uid"])
        if result:
            uids.append(result["uid"])
            print(f"  {result['name']:<8} {result['uid']:<12} {result['tokens']:g} tokens")
    return uids


# ---------------------------------------------------------------------------
# Parcels
# ---------------------------------------------------------------------------

DEMO_PARCELS = [
    # (owner, name, col, row, width, height)
    ("demo-alice", "Alice's Corner", 0, 0, 2, 2),
    ("demo-alice", "Alice's Strip", 4, 0, 1, 3),
    ("demo-bob", "Bob's Plaza", 0, 4, 2, 1),
    ("demo-carol", "Carol's Lot", -3, -3, 1, 1),
]


def seed_parcels(client: httpx.Client, addressor: GridAddressor) -> list[dict]:
    section("Parcels")
    parcels = []
    for owner, name, col, row, width, height in DEMO_PARCELS:
        cells = block(addressor, col, row, width, height)
        quote = api(client, "GET", "/api/pricing", params={"address": "Times Square, Manhattan"})
        per_cell = quote["pricePerCell"] if quote else 1.0
        # Demo balances are small; keep every parcel affordable.
        price = min(per_cell * len(cells), 2.0)
        receipt = api(
            client,
            "POST",
            "/api/properties/unallocated/buy",
            json={
                "id": str(uuid.uuid4()),
                "owner": owner,
                "cells": cells,
                "price": price,
                "name": name,
                "address": "Times Square, Manhattan, New York",
            },
            user=owner,
        )
        if receipt:
            prop = receipt["property"]
            parcels.append(prop)
            print(f"  {name:<16} {len(cells)} cells  owner={owner}  price={price:g}")
    return parcels


def seed_listing(client: httpx.Client, parcels: list[dict]) -> dict | None:
    section("Listings")
    listed = next((p for p in parcels if p["owner"] == "demo-alice"), None)
    if listed is None:
        print("  No parcel to list")
        return None
    result = api(
        client,
        "PUT",
        f"/api/properties/{listed['id']}",
        json={"forSale": True, "salePrice": 5.0},
        user="demo-alice",
    )
    if result:
        print(f"  {result.get('name')} listed for {result['salePrice']:g} tokens")
    return result


def seed_bids(client: httpx.Client, listed: dict | None) -> None:
    section("Bids")
    if listed is None:
        print("  Nothing listed, skipping bids")
        return
    result = api(
        client,
        "POST",
        "/api/properties/bids",
        json={"propertyId": listed["id"], "amount": 3.0, "message": "Would you take 3?"},
        user="demo-bob",
    )
    if result:
        print(f"  demo-bob bid 3 tokens on {listed.get('name')}")


# ---------------------------------------------------------------------------
# Treasures
# ---------------------------------------------------------------------------


def seed_treasures(client: httpx.Client, addressor: GridAddressor) -> None:
    section("Treasures")
    expires = (datetime.now(timezone.utc) + timedelta(days=30)).isoformat()
    treasures = [
        {
            "name": "Golden Pigeon",
            "description": "A gilded pigeon statue buried under the pavement.",
            "cells": block(addressor, 8, 8, 2, 2),
            "rewardType": "tokens",
            "rewardAmount": 5,
            "rewardMessage": "You found the Golden Pigeon! +5 tokens",
            "maxRedemptions": 1,
            "expiresAt": expires,
        },
        {
            "name": "Subway Token",
            "description": "A vintage subway token.",
            "cells": block(addressor, -6, 2, 1, 1),
            "rewardType": "tokens",
            "rewardAmount": 2,
            "rewardMessage": "An old subway token, worth 2 tokens today",
            "maxRedemptions": 3,
        },
    ]
    for treasure in treasures:
        result = api(client, "POST", "/api/treasures", json=treasure, user="demo-carol")
        if result:
            print(f"  {result['name']:<14} {len(result['cells'])} cells  id={result['id']}")


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def verify_data(client: httpx.Client) -> None:
    section("Verification")
    properties = api(client, "GET", "/api/properties") or []
    users = api(client, "GET", "/api/users") or []
    treasures = api(client, "GET", "/api/treasures") or []
    cells = sum(len(p["cells"]) for p in properties)
    print(f"  Properties: {len(properties)} ({cells} cells)")
    print(f"  Players:    {len(users)}")
    print(f"  Treasures:  {len(treasures)}")
    for user in users:
        print(f"    {user['uid']:<12} {user['tokens']:g} tokens")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Seed demo data into a running Land Grid Property Store"
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"Store base URL (default: {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--skip-treasures",
        action="store_true",
        help="Do not hide demo treasures",
    )
    args = parser.parse_args()

    print("Land Grid Demo Data Seeder")
    print(f"Target: {args.base_url}")
    print(f"Time:   {datetime.now(timezone.utc).isoformat()}")

    addressor = GridAddressor()

    with httpx.Client(base_url=args.base_url, timeout=30.0) as client:
        try:
            health = api(client, "GET", "/api/health")
            if not health:
                print("\nERROR: Store is not responding. Start it first:")
                print("  uvicorn landgrid.store.app:create_app --factory --port 3001")
                sys.exit(1)
        except httpx.ConnectError:
            print(f"\nERROR: Cannot connect to {args.base_url}")
            print("Start the store first:")
            print("  uvicorn landgrid.store.app:create_app --factory --port 3001")
            sys.exit(1)

        print(f"Store: {health.get('status', 'unknown')} (v{health.get('version', '?')})")

        seed_players(client)
        parcels = seed_parcels(client, addressor)
        listed = seed_listing(client, parcels)
        seed_bids(client, listed)
        if not args.skip_treasures:
            seed_treasures(client, addressor)
        verify_data(client)

        section("Done")
        print("  Demo data seeded successfully!")
        print()
        print("  To clear all data, restart the store:")
        print("    uvicorn landgrid.store.app:create_app --factory --port 3001")
        print()


if __name__ == "__main__":
    main()
