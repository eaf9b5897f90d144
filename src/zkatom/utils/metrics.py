"""
Metrics collector menggunakan Prometheus.
Mengumpulkan jumlah operasi, latency, version conflicts dan
notification deliveries untuk setiap atom, plus resource usage.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest
import time
import psutil


class MetricsCollector:
    """
    Class untuk mengumpulkan metrics atom.
    Menggunakan Prometheus format untuk monitoring.
    """

    def __init__(self):
        # Counter: operasi per type dan outcome (ok, error)
        self.operations = Counter(
            'zkatom_operations_total',
            'Total number of atom operations',
            ['operation', 'outcome']
        )

        # Histogram: latency per operasi (termasuk semua retries)
        self.operation_latency = Histogram(
            'zkatom_operation_latency_seconds',
            'Atom operation latency in seconds',
            ['operation']
        )

        self.version_conflicts = Counter(
            'zkatom_version_conflicts_total',
            'Conditional writes rejected because of a version conflict',
            ['path']
        )

        self.notifications = Counter(
            'zkatom_notifications_total',
            'Watch notifications delivered to atoms',
            ['path']
        )

        # Gauge: version terakhir yang terlihat di local cache
        self.data_version = Gauge(
            'zkatom_data_version',
            'Last data version observed by the local cache',
            ['path']
        )

        # System metrics
        self.cpu_usage = Gauge('zkatom_cpu_usage_percent', 'CPU usage percentage')
        self.memory_usage = Gauge('zkatom_memory_usage_percent', 'Memory usage percentage')

    def record_operation(self, operation: str, outcome: str, duration: float):
        """
        Record operation metrics.

        Args:
            operation: Nama operasi (swap, reset, compare_and_set, init)
            outcome: ok / error (conflicts dihitung terpisah di record_conflict)
            duration: Durasi dalam seconds
        """
        self.operations.labels(operation=operation, outcome=outcome).inc()
        self.operation_latency.labels(operation=operation).observe(duration)

    def record_conflict(self, path: str):
        self.version_conflicts.labels(path=path).inc()

    def record_notification(self, path: str, version: int):
        self.notifications.labels(path=path).inc()
        self.data_version.labels(path=path).set(version)

    def update_system_metrics(self):
        """Update CPU dan memory usage"""
        self.cpu_usage.set(psutil.cpu_percent())
        self.memory_usage.set(psutil.virtual_memory().percent)

    def get_metrics(self) -> bytes:
        """
        Export metrics dalam Prometheus format.
        Returns: Metrics data dalam bytes
        """
        self.update_system_metrics()
        return generate_latest()


# Context manager untuk measure operation time
class measure_time:
    """
    Context manager untuk mengukur execution time.

    Contoh penggunaan:
        with measure_time() as timer:
            await atom.swap(f)
        print(f"Execution time: {timer.elapsed}s")
    """

    def __init__(self):
        self.start_time = None
        self.elapsed = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self.start_time
        return False


# Singleton instance
metrics = MetricsCollector()
