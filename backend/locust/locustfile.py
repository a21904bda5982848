"""
Locust Load Test Suite

Codes are provisioned out of band. Seed them first, e.g.:
  INSERT INTO invitation_codes (code) VALUES ('LOAD-1'), ('LOAD-2'), ...;
and start the API with SIGN_UP_MODE=BOTH_SIGN_UP.

Run scenarios:
  LOAD_TEST_CODES=LOAD-1,LOAD-2 locust -f locustfile.py --tags race      # Claim races
  locust -f locustfile.py --tags waitlist                                # Waitlist dedup
  locust -f locustfile.py --tags edge                                    # Bad input
  locust -f locustfile.py                                                # All tests
"""

import os
import random
import uuid

from locust import HttpUser, task, between, tag, events

SIGN_UP_URL = "/api/v1/auth/sign-up"
WAITLIST_URL = "/api/v1/auth/interest-sign-up"

CODES = [c.strip() for c in os.environ.get("LOAD_TEST_CODES", "").split(",") if c.strip()]
# A small pool of addresses so many users hit the same waitlist rows
WAITLIST_EMAILS = [f"waitlist_{i}@test.com" for i in range(20)]


def random_email():
    return f"load_{uuid.uuid4().hex[:12]}@test.com"


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Race codes: {len(CODES)} ({', '.join(CODES[:5])}{'...' if len(CODES) > 5 else ''})")
    print("=" * 60)


class ClaimRaceUser(HttpUser):
    """
    TEST 1: Claim races - many users, few codes

    Run: LOAD_TEST_CODES=... locust -f locustfile.py --tags race -u 100 -r 50 --run-time 30s

    After test, verify every code has at most one account:
      SELECT c.code, COUNT(u.id) FROM invitation_codes c
      LEFT JOIN users u ON u.email = c.claimed_by GROUP BY c.code;
    Should be <= 1 per code
    """
    wait_time = between(0, 0.1)

    @tag("race")
    @task
    def sign_up_with_shared_code(self):
        """Everyone presents a code from the same small pool."""
        if not CODES:
            return

        with self.client.post(SIGN_UP_URL,
            json={
                "name": "Load Test",
                "email": random_email(),
                "password": "password123",
                "code": random.choice(CODES),
            },
            name=f"{SIGN_UP_URL} [race]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code in (400, 429):
                resp.success()  # Expected: code already used, or throttled
            elif resp.status_code == 503:
                resp.failure("Retries exhausted")
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class WaitlistUser(HttpUser):
    """
    TEST 2: Waitlist dedup - repeated joins with the same addresses

    Run: locust -f locustfile.py --tags waitlist -u 100 -r 20 --run-time 60s

    After test:
      SELECT email, COUNT(*) FROM waitlist_entries GROUP BY email HAVING COUNT(*) > 1;
    Should return no rows
    """
    wait_time = between(0.1, 0.5)

    @tag("waitlist")
    @task(10)
    def join_waitlist(self):
        with self.client.post(WAITLIST_URL,
            json={"email": random.choice(WAITLIST_EMAILS)},
            name=WAITLIST_URL,
            catch_response=True
        ) as resp:
            if resp.status_code in (200, 429):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("waitlist")
    @task(1)
    def sign_up_mode(self):
        self.client.get("/api/v1/auth/sign-up-mode")

    @tag("waitlist")
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

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_code(self):
        with self.client.post(SIGN_UP_URL,
            json={"name": "Edge", "email": random_email(), "password": "password123", "code": "NOPE"},
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 403, 429])

    @tag("edge")
    @task
    def huge_code(self):
        with self.client.post(SIGN_UP_URL,
            json={"name": "Edge", "email": random_email(), "password": "password123", "code": "X" * 5000},
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def invalid_email(self):
        with self.client.post(WAITLIST_URL,
            json={"email": "not an email"},
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post(SIGN_UP_URL,
            data="not json at all",
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.get("/api/v1/auth/me", catch_response=True) as resp:
            self._expect(resp, [401])
