"""
Rush Hour Simulation Script

Fires concurrent customer orders at a running server, walks every order
through the kitchen, then bills each one twice at the same time to check
that only one bill per order is ever created.

Run from project root: python scripts/simulate.py --orders 30

Version: 1.0.0
"""

import argparse
import asyncio
import os
import random
import sys
import time
from datetime import datetime
from typing import Any

import httpx

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from snappy_serve.core.config import get_settings  # noqa: E402
from snappy_serve.data import DEFAULT_MENU  # noqa: E402

API_BASE_URL = get_settings().api_base_url
TOTAL_ORDERS = 30

CUSTOMERS = ["Ann", "Ravi", "Meera", "Arjun", "Priya", "Kabir", "Sara", "Dev", "Isha", "Neel"]
MENU_ITEMS = [
    {"id": item["id"], "name": item["name"], "price": item["price"]}
    for items in DEFAULT_MENU.values()
    for item in items
]


def generate_random_items() -> list[dict]:
    """Generate random order lines."""
    items = []
    for item in random.sample(MENU_ITEMS, random.randint(1, 3)):
        line = item.copy()
        line["quantity"] = random.randint(1, 3)
        items.append(line)
    return items


# =============================================================================
# CUSTOMER + KITCHEN FLOW
# =============================================================================

async def place_order(client: httpx.AsyncClient, order_num: int) -> dict[str, Any]:
    """Place one order as a customer."""
    items = generate_random_items()
    payload = {
        "tableNumber": random.randint(1, 40),
        "customerName": random.choice(CUSTOMERS),
        "items": items,
        "totalAmount": sum(i["price"] * i["quantity"] for i in items),
    }
    start_time = time.time()
    try:
        response = await client.post(f"{API_BASE_URL}/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)
        if response.status_code == 200:
            return {
                "order_num": order_num,
                "success": True,
                "order_id": response.json().get("orderId"),
                "time": elapsed,
            }
        return {"order_num": order_num, "success": False, "error": response.text[:100], "time": elapsed}
    except httpx.HTTPError as e:
        elapsed = round(time.time() - start_time, 3)
        return {"order_num": order_num, "success": False, "error": str(e)[:100], "time": elapsed}


async def cook_and_bill(client: httpx.AsyncClient, order_id: str) -> list[bool]:
    """Advance an order to READY, then bill it twice concurrently."""
    for status in ("PREPARING", "READY"):
        response = await client.patch(f"{API_BASE_URL}/orders/{order_id}", json={"status": status})
        response.raise_for_status()

    responses = await asyncio.gather(
        client.post(f"{API_BASE_URL}/orders/{order_id}/bill"),
        client.post(f"{API_BASE_URL}/orders/{order_id}/bill"),
    )
    return [r.json().get("created", False) for r in responses if r.status_code == 200]


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    print("=" * 70)
    print("☕ RUSH HOUR SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        print("\n🚀 Customers placing orders...\n")
        results = await asyncio.gather(*[place_order(client, i + 1) for i in range(num_orders)])
        placed = [r for r in results if r["success"]]

        print("👨‍🍳 Kitchen cooking and billing (double-clicking every bill)...\n")
        created_flags = await asyncio.gather(
            *[cook_and_bill(client, r["order_id"]) for r in placed],
            return_exceptions=True,
        )

        report = (await client.get(f"{API_BASE_URL}/reports/daily")).json()

    total_time = round(time.time() - start_time, 2)
    billed = [flags for flags in created_flags if isinstance(flags, list)]
    duplicates = [flags for flags in billed if sum(flags) > 1]

    print("=" * 70)
    print("📊 RESULTS")
    print("=" * 70)
    print(f"   Orders placed:     {len(placed)}/{num_orders}")
    print(f"   Orders billed:     {len(billed)}")
    print(f"   Duplicate bills:   {len(duplicates)}")
    print(f"   Revenue today:     {report.get('totalRevenue')}")
    print(f"   Total time:        {total_time}s")
    print("=" * 70)
    if duplicates:
        print("❌ Some orders were billed twice!")
    else:
        print("✅ Exactly one bill per order")

    return {
        "total": num_orders,
        "placed": len(placed),
        "billed": len(billed),
        "duplicates": len(duplicates),
        "total_time": total_time,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rush Hour Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    args = parser.parse_args()

    asyncio.run(run_simulation(num_orders=args.orders))
