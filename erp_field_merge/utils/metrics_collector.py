"""
Metrics Collector Utility for ERP Field Merge

Prometheus metrics for batch merge analysis: operations analysed by
recommendation and risk, conflicts by kind, merged fields by provenance,
analysis errors and durations.
"""

from typing import Any, Dict, Optional, Sequence
from prometheus_client import Counter, Gauge, Histogram, Summary, CollectorRegistry, push_to_gateway
import logging
import time
from functools import wraps

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "erp_field_merge"


class MetricsCollector:
    """
    Registry-scoped Prometheus metrics keyed by short names.

    Metrics are registered in a private CollectorRegistry so several
    collectors (one per batch run, or per test) never clash.
    """

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        registry: Optional[CollectorRegistry] = None
    ):
        """
        Initialize metrics collector.

        Args:
            namespace: Metric name prefix
            registry: Prometheus registry (a new one if not provided)
        """
        self.namespace = namespace
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        logger.debug(f"Initialized MetricsCollector with namespace: {namespace}")

    def _full_name(self, name: str) -> str:
        return f"{self.namespace}_{name}"

    def _get_or_create(self, metric_cls, name: str, description: str, labels, **kwargs):
        full_name = self._full_name(name)

        if full_name not in self._metrics:
            self._metrics[full_name] = metric_cls(
                full_name,
                description,
                labelnames=labels or [],
                registry=self.registry,
                **kwargs
            )
            logger.debug(f"Created {metric_cls.__name__.lower()}: {full_name}")

        return self._metrics[full_name]

    def create_counter(self, name: str, description: str, labels: Optional[Sequence[str]] = None) -> Counter:
        """Create or retrieve a counter."""
        return self._get_or_create(Counter, name, description, labels)

    def create_gauge(self, name: str, description: str, labels: Optional[Sequence[str]] = None) -> Gauge:
        """Create or retrieve a gauge."""
        return self._get_or_create(Gauge, name, description, labels)

    def create_histogram(
        self,
        name: str,
        description: str,
        labels: Optional[Sequence[str]] = None,
        buckets: Optional[tuple] = None
    ) -> Histogram:
        """
        Create or retrieve a histogram.

        Args:
            name: Metric name without namespace
            description: Help text
            labels: Label names
            buckets: Bucket upper bounds (prometheus defaults if omitted)

        Returns:
            Prometheus Histogram
        """
        kwargs = {"buckets": buckets} if buckets else {}
        return self._get_or_create(Histogram, name, description, labels, **kwargs)

    def create_summary(self, name: str, description: str, labels: Optional[Sequence[str]] = None) -> Summary:
        """Create or retrieve a summary."""
        return self._get_or_create(Summary, name, description, labels)

    def _lookup(self, name: str, kind: str):
        metric = self._metrics.get(self._full_name(name))
        if metric is None:
            logger.warning(f"{kind} {self._full_name(name)} not found")
        return metric

    def increment_counter(self, name: str, value: float = 1.0, labels: Optional[Dict] = None) -> None:
        """
        Increment a counter.

        Args:
            name: Counter name without namespace
            value: Increment
            labels: Label values
        """
        counter = self._lookup(name, "Counter")
        if counter is None:
            return

        if labels:
            counter.labels(**labels).inc(value)
        else:
            counter.inc(value)

    def set_gauge(self, name: str, value: float, labels: Optional[Dict] = None) -> None:
        """Set a gauge value."""
        gauge = self._lookup(name, "Gauge")
        if gauge is None:
            return

        if labels:
            gauge.labels(**labels).set(value)
        else:
            gauge.set(value)

    def observe_histogram(self, name: str, value: float, labels: Optional[Dict] = None) -> None:
        """Record a value in a histogram."""
        histogram = self._lookup(name, "Histogram")
        if histogram is None:
            return

        if labels:
            histogram.labels(**labels).observe(value)
        else:
            histogram.observe(value)

    def time_function(self, metric_name: str, labels: Optional[Dict] = None):
        """
        Decorator recording the wall time of each call in a histogram.

        The duration is recorded even when the call raises.

        Args:
            metric_name: Histogram name without namespace
            labels: Label values

        Returns:
            Decorator
        """
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    duration = time.time() - start_time
                    self.observe_histogram(metric_name, duration, labels)
                    logger.debug(f"Function {func.__name__} took {duration:.3f}s")
            return wrapper
        return decorator

    def push_to_gateway(
        self,
        gateway_url: str,
        job_name: str,
        grouping_key: Optional[Dict] = None
    ) -> None:
        """
        Push the registry to a Prometheus Pushgateway.

        Batch runs are short-lived, so metrics are pushed rather than scraped.

        Args:
            gateway_url: Pushgateway address
            job_name: Job label
            grouping_key: Extra grouping labels

        Raises:
            Exception: If the push fails
        """
        try:
            push_to_gateway(
                gateway_url,
                job=job_name,
                registry=self.registry,
                grouping_key=grouping_key or {}
            )
            logger.info(f"Pushed metrics to gateway: {gateway_url}")
        except Exception as e:
            logger.error(f"Failed to push metrics to gateway: {e}")
            raise

    def get_metric(self, name: str):
        """Retrieve a metric by short or full name, or None."""
        if name in self._metrics:
            return self._metrics[name]
        return self._metrics.get(self._full_name(name))

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Current value of a sample in this collector's registry."""
        return self.registry.get_sample_value(self._full_name(name), labels or {})

    def clear_metrics(self) -> None:
        """Forget all registered metrics."""
        self._metrics.clear()
        logger.info("Cleared all metrics")


def setup_merge_metrics(collector: Optional[MetricsCollector] = None) -> MetricsCollector:
    """
    Register the metrics recorded by the batch coordinator.

    Args:
        collector: Collector to configure (a new one if omitted)

    Returns:
        Configured MetricsCollector
    """
    collector = collector or MetricsCollector()

    collector.create_counter(
        "operations_analyzed_total",
        "Operations analysed, by recommendation and risk",
        labels=["recommendation", "risk"]
    )

    collector.create_counter(
        "conflicts_detected_total",
        "Attribute conflicts detected, by kind",
        labels=["kind"]
    )

    collector.create_counter(
        "fields_merged_total",
        "Merged fields, by provenance",
        labels=["provenance"]
    )

    collector.create_counter(
        "operation_analysis_errors_total",
        "Operations converted to skip because a source or merge raised"
    )

    collector.create_histogram(
        "analysis_duration_seconds",
        "Time spent analysing one operation",
        buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0)
    )

    collector.create_histogram(
        "batch_size",
        "Number of operations per batch run",
        buckets=(1, 10, 50, 100, 500, 1000)
    )

    logger.info("Set up merge analysis metrics")
    return collector
