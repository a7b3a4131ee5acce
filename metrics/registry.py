"""Process-wide gauge registry rendered in Prometheus exposition format"""
from typing import Dict, Optional
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from .models import MetricFamily, MetricValue


# (help text, label names) per family
FAMILY_DEFINITIONS = {
    MetricFamily.VOLTAGE: ("Current voltage in V", ("phase",)),
    MetricFamily.POWER: ("Current power in kW", ("direction", "phase")),
    MetricFamily.ENERGY_TRANSPORTED: ("Energy total in kWh", ("direction", "tariff")),
    MetricFamily.GAS_DELIVERED: ("Gas delivered in m3", ()),
}


class DsmrMetricsRegistry:
    """Holds the current value of every label combination seen for each family.
    
    Values are overwritten on every scrape and never reset. Individual gauge
    updates are atomic (prometheus_client locks each value); there is no
    consistency across families or across concurrent scrapes.
    """
    
    def __init__(self, namespace: str = "dsmr"):
        self.namespace = namespace
        self.registry = CollectorRegistry()
        self.gauges: Dict[MetricFamily, Gauge] = {}
        
        for family, (help_text, labelnames) in FAMILY_DEFINITIONS.items():
            self.gauges[family] = Gauge(
                family.value,
                help_text,
                labelnames=labelnames,
                namespace=namespace,
                registry=self.registry
            )
        
        # Exporter self-instrumentation
        self.scrapes = Counter(
            "scrapes",
            "Scrapes of the DSMR logger",
            namespace=namespace,
            registry=self.registry
        )
        self.scrape_errors = Counter(
            "scrape_errors",
            "Scrapes of the DSMR logger that failed",
            namespace=namespace,
            registry=self.registry
        )
        self.scrape_duration = Histogram(
            "scrape_duration_seconds",
            "Time spent fetching and applying DSMR logger readings",
            namespace=namespace,
            registry=self.registry
        )
    
    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST
    
    def metric_name(self, family: MetricFamily) -> str:
        """Fully qualified metric name for a family"""
        return f"{self.namespace}_{family.value}" if self.namespace else family.value
    
    def update(self, metric: MetricValue) -> None:
        """Upsert a value for its family and label combination"""
        gauge = self.gauges[metric.family]
        if metric.labels:
            gauge.labels(**metric.labels).set(metric.value)
        else:
            gauge.set(metric.value)
    
    def get_value(self, family: MetricFamily, labels: Dict[str, str] = None) -> Optional[float]:
        """Current value for a family and label set, None if never observed"""
        return self.registry.get_sample_value(self.metric_name(family), labels or {})
    
    def record_scrape(self, duration: float, success: bool) -> None:
        """Count a scrape and observe its duration"""
        self.scrapes.inc()
        if not success:
            self.scrape_errors.inc()
        self.scrape_duration.observe(duration)
    
    def get_sample(self, name: str, labels: Dict[str, str] = None) -> Optional[float]:
        """Value of a raw sample under this namespace, e.g. ``scrapes_total``"""
        full_name = f"{self.namespace}_{name}" if self.namespace else name
        return self.registry.get_sample_value(full_name, labels or {})
    
    def render(self) -> bytes:
        """Serialize current state in the text exposition format"""
        return generate_latest(self.registry)
