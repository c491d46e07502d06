"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Many customers, few seats
  locust -f locustfile.py --tags throughput   # Seat map cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Needs the user and schedule catalogs reachable at USER_SERVICE_URL and
SCHEDULE_SERVICE_URL, with LOAD_SCHEDULE_ID valid there and users
"load-1".."load-5000" known.
"""

import os
import random

import httpx

from locust import HttpUser, task, between, tag, events

from railbook.core.config import get_settings
from railbook.core.security import create_access_token

settings = get_settings()
SCHEDULE_ID = int(os.environ.get("LOAD_SCHEDULE_ID", "1"))
INTERNAL_HEADERS = {"X-Internal-Token": settings.INTERNAL_API_TOKEN}
GOOD_CARD = {"card_number": "4242424242424242", "expiry_month": "12", "expiry_year": "2030", "cvc": "123"}

# Shared state
SEAT_IDS: list[str] = []


def auth_headers() -> dict:
    user_id = f"load-{random.randint(1, 5000)}"
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user_id})}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: create 10 seats so the concurrency test has something to fight over."""
    host = environment.host or "http://localhost:8000"
    with httpx.Client(base_url=host, headers=INTERNAL_HEADERS) as client:
        for _ in range(10):
            resp = client.post(
                "/internal/inventory/seats",
                json={"schedule_id": SCHEDULE_ID, "train_id": 1, "seat_number": f"L{random.randint(0, 99999)}"},
            )
            if resp.status_code == 201:
                SEAT_IDS.append(resp.json()["id"])
    print(f"\nSETUP: created {len(SEAT_IDS)} seats on schedule {SCHEDULE_ID}\n")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM seat_holds h JOIN seats s ON s.id = h.seat_id WHERE s.schedule_id = X;
    Should be <= 10, and every HELD seat has exactly one hold.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = auth_headers()

    @tag("concurrency")
    @task
    def hold_and_confirm(self):
        """All users fight for the same 10 seats; winners pay, some cancel."""
        if not SEAT_IDS:
            return

        with self.client.post("/api/v1/bookings/",
            json={"schedule_id": SCHEDULE_ID, "seat_ids": [random.choice(SEAT_IDS)]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 409:
                resp.success()  # Expected: seat taken
                return
            if resp.status_code != 201:
                resp.failure(f"Unexpected: {resp.status_code}")
                return
            booking_id = resp.json()["booking_id"]

        self.client.post(f"/api/v1/bookings/{booking_id}/confirm",
            json={"amount": "1000.00", "card": GOOD_CARD},
            headers=self.headers,
            name="/api/v1/bookings/{id}/confirm")

        if random.random() < 0.5:
            self.client.delete(f"/api/v1/bookings/{booking_id}",
                headers=self.headers,
                name="/api/v1/bookings/{id}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def seat_map_cached(self):
        """Hammer the cached endpoint."""
        self.client.get(f"/api/v1/schedules/{SCHEDULE_ID}/seats",
            name="/api/v1/schedules/{id}/seats [cached]")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = auth_headers()

    def expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_seat(self):
        with self.client.post("/api/v1/bookings/",
            json={"schedule_id": SCHEDULE_ID, "seat_ids": ["no-such-seat"]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [409])

    @tag("edge")
    @task
    def too_many_seats(self):
        with self.client.post("/api/v1/bookings/",
            json={"schedule_id": SCHEDULE_ID, "seat_ids": [f"s{i}" for i in range(11)]},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [422])

    @tag("edge")
    @task
    def confirm_missing_booking(self):
        with self.client.post("/api/v1/bookings/does-not-exist/confirm",
            json={"amount": "10.00", "card": GOOD_CARD},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [404])

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/",
            json={"schedule_id": SCHEDULE_ID, "seat_ids": ["x"]},
            catch_response=True
        ) as resp:
            self.expect(resp, [401])
