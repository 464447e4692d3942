#!/usr/bin/env python3
"""Walk one booking through a full turnover against a running server."""

from __future__ import annotations

import json
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


class HttpClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        admin_key: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        if admin_key:
            self.headers["X-Admin-Key"] = admin_key

    def request_json(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        if query:
            query = {k: v for k, v in query.items() if v is not None}
            if query:
                url = f"{url}?{urlencode(query)}"

        data = None
        if payload is not None:
            data = json.dumps(payload, default=str).encode("utf-8")

        req = Request(url, data=data, method=method)
        for key, value in self.headers.items():
            req.add_header(key, value)

        try:
            with urlopen(req, timeout=timeout) as response:
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"{method} {url} failed: {exc.code} {exc.reason}: {detail}") from None

        if not raw:
            return {}
        return json.loads(raw.decode("utf-8"))


def _task_of_type(timeline: dict[str, Any], task_type: str) -> dict[str, Any]:
    for task in timeline["tasks"]:
        if task["taskType"] == task_type:
            return task
    raise RuntimeError(f"No {task_type} task in timeline {timeline['bookingId']}")


def main() -> int:
    base_url = _env("TURNOVER_URL", "http://localhost:8080")
    api_key = _env("TURNOVER_API_KEY")
    admin_key = _env("TURNOVER_ADMIN_API_KEY")
    staff_id = _env("TURNOVER_STAFF_ID", "walkthrough-cleaner")
    booking_id = _env("TURNOVER_BOOKING_ID", f"walkthrough-{uuid.uuid4().hex[:8]}")

    client = HttpClient(base_url, api_key=api_key, admin_key=admin_key)

    print("Checking health...")
    health = client.request_json("GET", "/v1/health")
    if health.get("status") != "healthy":
        raise RuntimeError(f"Unexpected health response: {health}")

    # Check-out already passed, so the checkout sweep fires right away
    now = datetime.now(timezone.utc)
    print(f"Confirming booking {booking_id}...")
    confirmed = client.request_json(
        "POST",
        "/v1/bookings/confirmed",
        payload={
            "bookingId": booking_id,
            "propertyId": "walkthrough-villa",
            "propertyName": "Walkthrough Villa",
            "guestName": "Walkthrough Guest",
            "checkInDate": (now - timedelta(days=3)).isoformat(),
            "checkOutDate": (now - timedelta(minutes=5)).isoformat(),
        },
    )
    timeline = confirmed["timeline"]
    print(f"Timeline created={confirmed['created']} with {len(timeline['tasks'])} tasks")

    print("Running checkout sweep...")
    sweep = client.request_json("POST", "/v1/admin/sweeps/checkout")
    print(f"Checkout sweep: {sweep}")

    timeline = client.request_json("GET", f"/v1/bookings/{booking_id}/timeline")
    checkout = _task_of_type(timeline, "checkout")
    if checkout["status"] != "completed":
        raise RuntimeError(f"Checkout not completed: {checkout}")

    cleaning = _task_of_type(timeline, "cleaning")
    if cleaning["status"] != "assigned":
        raise RuntimeError(f"Cleaning not activated: {cleaning}")
    cleaning_id = cleaning["taskId"]

    print("Cleaning in progress...")
    client.request_json(
        "POST",
        f"/v1/tasks/{cleaning_id}/transition",
        payload={"newStatus": "in_progress", "staffId": staff_id},
    )
    print("Cleaning complete...")
    client.request_json(
        "POST",
        f"/v1/tasks/{cleaning_id}/transition",
        payload={
            "newStatus": "completed",
            "staffId": staff_id,
            "completionEvidence": {
                "photoRefs": [f"memory://photos/{cleaning_id}/living-room.jpg"],
                "checklistCompleted": True,
                "notes": "Walkthrough clean",
            },
        },
    )

    timeline = client.request_json("GET", f"/v1/bookings/{booking_id}/timeline")
    inspection = _task_of_type(timeline, "inspection")
    if inspection["status"] != "assigned":
        raise RuntimeError(f"Inspection not activated: {inspection}")

    print("Submitting inspection...")
    outcome = client.request_json(
        "POST",
        f"/v1/tasks/{inspection['taskId']}/inspection",
        payload={"passed": True, "photosReviewed": True, "approvalNotes": "All good"},
    )
    if outcome["task"]["status"] != "approved":
        raise RuntimeError(f"Inspection not approved: {outcome}")

    timeline = client.request_json("GET", f"/v1/bookings/{booking_id}/timeline")
    if timeline["currentPhase"] != "ready":
        raise RuntimeError(f"Timeline not ready: {timeline['currentPhase']}")

    alerts = client.request_json(
        "GET",
        "/v1/alerts",
        query={"alert_type": "timeline-complete", "limit": 50},
    ).get("alerts", [])
    if not any(a["context"].get("booking_id") == booking_id for a in alerts):
        raise RuntimeError("Missing timeline-complete alert")

    print(f"Walkthrough complete: booking {booking_id} is ready for the next guest.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise
