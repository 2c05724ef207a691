#!/usr/bin/env python
"""Demonstrate the forecast request lifecycle over the HTTP API.

Usage:
    uv run python examples/forecast_demo.py

This script demonstrates:
1. Registering and opening an hourly anomaly job
2. Publishing model state the way ingestion would
3. Requesting a forecast and waiting for it to finish
4. Reading the predicted points and the request stats

Prerequisites:
    - PostgreSQL running (docker-compose up -d)
    - Database migrated (uv run alembic upgrade head)
    - API running (uv run uvicorn anomalycast.main:app --reload --port 8123)
"""

import json
import math
import sys

import httpx

API_BASE = "http://localhost:8123"
JOB_ID = "demo-cpu-hourly"


def print_section(title: str) -> None:
    """Print a section header."""
    print(f"\n{'=' * 60}")
    print(f"  {title}")
    print(f"{'=' * 60}\n")


def print_response(response: httpx.Response, label: str = "") -> dict:
    """Print HTTP response details."""
    content_type = response.headers.get("content-type", "")
    data = response.json() if "json" in content_type else {}
    status_mark = "✓" if response.status_code < 400 else "✗"
    print(f"{status_mark} {label} [{response.status_code}]")
    if data:
        print(json.dumps(data, indent=2, default=str))
    return data


def main() -> int:
    """Run the forecast demo workflow."""
    print_section("AnomalyCast - Forecast Demo")

    client = httpx.Client(base_url=API_BASE, timeout=60)

    try:
        health = client.get("/health")
        if health.status_code != 200:
            print(f"API not healthy: {health.status_code}")
            return 1
    except httpx.ConnectError:
        print(f"Cannot connect to API at {API_BASE}")
        print("Start the API with: uv run uvicorn anomalycast.main:app --reload --port 8123")
        return 1

    print("✓ API is healthy\n")

    # ==========================================================================
    # Step 1: Register and open a job
    # ==========================================================================
    print_section("Step 1: Register an Hourly Job")

    response = client.post("/anomaly-jobs", json={"job_id": JOB_ID, "bucket_span": "1h"})
    if response.status_code == 409:
        print(f"Job {JOB_ID} already exists, reusing it")
    else:
        print_response(response, "Create job")

    response = client.get(f"/anomaly-jobs/{JOB_ID}")
    if response.json()["state"] != "open":
        print_response(client.post(f"/anomaly-jobs/{JOB_ID}/_open"), "Open job")

    # ==========================================================================
    # Step 2: Publish model state
    # ==========================================================================
    print_section("Step 2: Publish Model State")

    # Two days of a daily cycle, one value per hour
    bucket_values = [50 + 20 * math.sin(2 * math.pi * h / 24) for h in range(48)]
    print_response(
        client.put(
            f"/anomaly-jobs/{JOB_ID}/model-state",
            json={
                "last_bucket_time": "2024-01-02T23:00:00Z",
                "model_snapshot": {"bucket_values": bucket_values, "method": "seasonal_naive"},
            },
        ),
        "Publish model state",
    )

    # ==========================================================================
    # Step 3: Request a forecast
    # ==========================================================================
    print_section("Step 3: Request a 12h Forecast")

    ack = print_response(
        client.post(
            f"/anomaly-jobs/{JOB_ID}/_forecast",
            json={"duration": "12h", "expires_in": "1h"},
        ),
        "Submit forecast",
    )
    forecast_id = ack.get("forecast_id")
    if not forecast_id:
        return 1

    stats = print_response(
        client.post(f"/anomaly-jobs/{JOB_ID}/forecasts/{forecast_id}/_wait?timeout=30s"),
        "Wait for forecast",
    )
    if stats.get("status") != "finished":
        print(f"Forecast ended with status {stats.get('status')}")
        return 1

    # ==========================================================================
    # Step 4: Read the points
    # ==========================================================================
    print_section("Step 4: Forecast Points")

    points = client.get(f"/anomaly-jobs/{JOB_ID}/forecasts/{forecast_id}/points").json()
    for point in points["points"]:
        print(f"  {point['timestamp']}  {point['predicted_value']:8.2f}")

    print_section("Demo Complete")
    print(f"Forecast {forecast_id} expires at {stats['expiry_time']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
