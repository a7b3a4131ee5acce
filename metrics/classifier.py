"""Map flat DSMR measurement names onto labelled gauge families"""
from typing import Iterable, Optional
from .models import Measurement, MetricFamily, MetricValue
from .registry import DsmrMetricsRegistry
from logging_config import get_logger


logger = get_logger(__name__)


VOLTAGE_PREFIX = "voltage_"
POWER_DELIVERED_PREFIX = "power_delivered_"
POWER_RETURNED_PREFIX = "power_returned_"
ENERGY_MARKER = "energy_"
GAS_DELIVERED_NAME = "gas_delivered"


def classify(measurement: Measurement) -> Optional[MetricValue]:
    """Classify a measurement by name, returning None for unknown names.
    
    Rules are checked in order and the first match wins:
    
    - ``voltage_<phase>``
    - ``power_delivered_<phase>`` and ``power_returned_<phase>``
    - any name containing ``energy_``: direction is ``delivered`` when the
      name contains ``_delivered_``, otherwise ``returned``; tariff is
      ``high`` when the name ends with ``2``, otherwise ``low``
    - exactly ``gas_delivered``
    """
    name = measurement.name
    
    if name.startswith(VOLTAGE_PREFIX):
        return MetricValue(
            family=MetricFamily.VOLTAGE,
            value=measurement.value,
            labels={"phase": name[len(VOLTAGE_PREFIX):]}
        )
    
    if name.startswith(POWER_DELIVERED_PREFIX):
        return MetricValue(
            family=MetricFamily.POWER,
            value=measurement.value,
            labels={"direction": "delivered", "phase": name[len(POWER_DELIVERED_PREFIX):]}
        )
    
    if name.startswith(POWER_RETURNED_PREFIX):
        return MetricValue(
            family=MetricFamily.POWER,
            value=measurement.value,
            labels={"direction": "returned", "phase": name[len(POWER_RETURNED_PREFIX):]}
        )
    
    if ENERGY_MARKER in name:
        direction = "delivered" if "_delivered_" in name else "returned"
        tariff = "high" if name.endswith("2") else "low"
        return MetricValue(
            family=MetricFamily.ENERGY_TRANSPORTED,
            value=measurement.value,
            labels={"direction": direction, "tariff": tariff}
        )
    
    if name == GAS_DELIVERED_NAME:
        return MetricValue(family=MetricFamily.GAS_DELIVERED, value=measurement.value)
    
    return None


def apply(measurements: Iterable[Measurement], registry: DsmrMetricsRegistry) -> int:
    """Write every classifiable measurement into the registry.
    
    Returns the number of measurements applied. Unknown names are skipped.
    """
    applied = 0
    for measurement in measurements:
        metric = classify(measurement)
        if metric is None:
            logger.debug("Ignoring unknown measurement", name=measurement.name, event_type="measurement_ignored")
            continue
        registry.update(metric)
        applied += 1
    return applied
