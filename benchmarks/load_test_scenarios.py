"""
Load testing scenarios menggunakan Locust.

Banyak users menulis ke atom yang sama untuk mengukur latency
swap/reset di bawah contention (version conflicts + retries).

Cara menjalankan:
  python -m zkatom serve
  locust -f benchmarks/load_test_scenarios.py --host=http://localhost:5000
"""

from locust import HttpUser, task, between, events
import random
import time


class AtomReaderUser(HttpUser):
    """
    Simulate user yang hanya membaca atom (local cache, tanpa I/O).
    """
    wait_time = between(0.1, 0.5)

    @task(5)
    def deref(self):
        """Read value dari atom"""
        with self.client.get("/api/atom", catch_response=True) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"HTTP {response.status_code}")

    @task(1)
    def check_status(self):
        """Check atom status"""
        self.client.get("/api/status")


class AtomWriterUser(HttpUser):
    """
    Simulate user yang menulis ke atom secara concurrent.
    """
    wait_time = between(0.2, 1.0)

    def on_start(self):
        """Called saat user start"""
        self.user_id = random.randint(1, 1000)
        self.keys = [f"key_{i}" for i in range(20)]

    @task(4)
    def assoc_key(self):
        """Swap dengan assoc satu key"""
        key = random.choice(self.keys)

        with self.client.post(
            "/api/atom/assoc",
            json={
                'key': key,
                'value': {'user_id': self.user_id, 'timestamp': time.time()}
            },
            catch_response=True
        ) as response:
            if response.status_code == 200:
                response.success()
            elif response.status_code == 409:
                # Value di-reset ke non-map oleh user lain
                response.success()
            else:
                response.failure(f"HTTP {response.status_code}")

    @task(1)
    def reset_atom(self):
        """Reset atom ke map kosong"""
        with self.client.post(
            "/api/atom/reset",
            json={'value': {}},
            catch_response=True
        ) as response:
            if response.status_code == 200:
                response.success()
            else:
                response.failure(f"HTTP {response.status_code}")


# Event handlers untuk custom metrics
@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("Load test starting...")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    print("Load test complete!")
    print(f"Total requests: {environment.stats.total.num_requests}")
    print(f"Failure rate: {environment.stats.total.fail_ratio:.2%}")
