"""
Locust Load Test Suite

Run scenarios:
  ADMIN_USER_ID=1 locust -f locustfile.py --tags concurrency  # Test over-lending
  locust -f locustfile.py --tags throughput                   # Test cache
  locust -f locustfile.py --tags edge                         # Test bad input
  ADMIN_USER_ID=1 locust -f locustfile.py                     # All tests

ADMIN_USER_ID must name an existing admin account; it is used once to
create the contended book. CONTENDED_BOOK_ID skips that step and reuses
an existing book instead.
"""

import os
import random
from locust import HttpUser, task, between, tag, events

# Shared state
BOOK_IDS = []
CONTENDED_BOOK_ID = int(os.environ["CONTENDED_BOOK_ID"]) if os.environ.get("CONTENDED_BOOK_ID") else None
CONTENDED_COPIES = 10
ADMIN_HEADERS = {"X-Admin-User-Id": os.environ.get("ADMIN_USER_ID", "")}

EVIDENCE = [f"data:image/jpeg;base64,/9j/4AAQSkZJRgABAQ{side}" for side in ("front", "back", "spine", "pages")]


def random_email():
    return f"load_{random.randint(100000, 999999)}@test.com"


def random_phone():
    return "".join(random.choices("0123456789", k=10))


def register(client):
    """Create a patron through the profile endpoint and return its id."""
    resp = client.post("/api/v1/users/complete-profile", json={
        "email": random_email(),
        "name": "Load Reader",
        "phone_number": random_phone(),
    })
    if resp.status_code == 200:
        return resp.json()["id"]
    return None


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print("SETUP: contended book id =", CONTENDED_BOOK_ID or "created on first user start")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 patrons -> 10 copies

    Run: ADMIN_USER_ID=1 locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM borrowing_records WHERE book_id = X AND status = 'borrowed';
    Should be <= 10, and books.available_copies should be 10 minus that count.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global CONTENDED_BOOK_ID
        self.user_id = register(self.client)

        if not CONTENDED_BOOK_ID:
            resp = self.client.post("/api/v1/admin/books",
                json={
                    "title": "Concurrency Test Book",
                    "book_code": f"LOAD-{random.randint(100000, 999999)}",
                    "author": "Load Test",
                    "genre": "Test",
                    "image": "https://covers.example.com/load",
                    "total_copies": CONTENDED_COPIES,
                },
                headers=ADMIN_HEADERS,
            )
            if resp.status_code == 201:
                CONTENDED_BOOK_ID = resp.json()["id"]
                print(f"\n✓ Created book {CONTENDED_BOOK_ID} with {CONTENDED_COPIES} copies\n")

    @tag("concurrency")
    @task
    def borrow_contended_book(self):
        """All patrons fight for the same 10 copies."""
        if not CONTENDED_BOOK_ID or not self.user_id:
            return

        with self.client.post(f"/api/v1/borrows/{CONTENDED_BOOK_ID}",
            json={"user_id": self.user_id, "evidence_photos": EVIDENCE},
            name="/api/v1/borrows/{book_id}",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: out of copies or already holding it
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ChurnUser(HttpUser):
    """
    TEST 2: Borrow/return churn on one book

    Run: ADMIN_USER_ID=1 CONTENDED_BOOK_ID=<id> locust -f locustfile.py --tags churn -u 50 -r 10

    Every patron borrows and returns in a loop. available_copies must stay
    within [0, total_copies] the whole time.
    """
    wait_time = between(0, 0.2)

    def on_start(self):
        self.user_id = register(self.client)
        self.record_id = None

    @tag("churn")
    @task
    def borrow_or_return(self):
        if not CONTENDED_BOOK_ID or not self.user_id:
            return

        if self.record_id is None:
            with self.client.post(f"/api/v1/borrows/{CONTENDED_BOOK_ID}",
                json={"user_id": self.user_id, "evidence_photos": EVIDENCE},
                name="/api/v1/borrows/{book_id}",
                catch_response=True
            ) as resp:
                if resp.status_code == 201:
                    self.record_id = resp.json()["id"]
                    resp.success()
                elif resp.status_code == 409:
                    resp.success()
                else:
                    resp.failure(f"Unexpected: {resp.status_code}")
        else:
            with self.client.post(f"/api/v1/borrows/return/{self.record_id}",
                json={"user_id": self.user_id, "evidence_photos": EVIDENCE},
                name="/api/v1/borrows/return/{record_id}",
                catch_response=True
            ) as resp:
                if resp.status_code == 200:
                    self.record_id = None
                    resp.success()
                else:
                    resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_books_cached(self):
        """Hammer the cached endpoint."""
        page = random.randint(1, 5)
        resp = self.client.get(f"/api/v1/books/?page={page}&page_size=20",
            name="/api/v1/books/ [cached]")
        if resp.status_code == 200:
            for book in resp.json().get("books", []):
                if book["id"] not in BOOK_IDS:
                    BOOK_IDS.append(book["id"])

    @tag("throughput", "read")
    @task(3)
    def get_book_detail(self):
        if BOOK_IDS:
            book_id = random.choice(BOOK_IDS)
            self.client.get(f"/api/v1/books/{book_id}",
                name="/api/v1/books/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.user_id = register(self.client) or 1

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_book(self):
        with self.client.post("/api/v1/borrows/999999",
            json={"user_id": self.user_id, "evidence_photos": EVIDENCE},
            name="/api/v1/borrows/{book_id} [missing]",
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def too_few_photos(self):
        with self.client.post("/api/v1/borrows/1",
            json={"user_id": self.user_id, "evidence_photos": EVIDENCE[:2]},
            name="/api/v1/borrows/{book_id} [photos]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def not_an_image(self):
        with self.client.post("/api/v1/borrows/1",
            json={"user_id": self.user_id, "evidence_photos": EVIDENCE[:3] + ["hello"]},
            name="/api/v1/borrows/{book_id} [payload]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/borrows/1",
            data="not json at all",
            name="/api/v1/borrows/{book_id} [garbage]",
            catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def admin_without_header(self):
        with self.client.get("/api/v1/admin/users", catch_response=True) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def return_unknown_record(self):
        with self.client.post("/api/v1/borrows/return/999999",
            json={"user_id": self.user_id, "evidence_photos": EVIDENCE},
            name="/api/v1/borrows/return/{record_id} [missing]",
            catch_response=True
        ) as resp:
            self._expect(resp, [404])
