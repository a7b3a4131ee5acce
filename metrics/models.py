"""Data models for DSMR measurements and classified metric values"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Measurement(BaseModel):
    """A single reading from the DSMR logger /api/v1/sm/actual endpoint"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    
    name: str = Field(..., alias="Name")
    value: float = Field(..., alias="Value", strict=True, allow_inf_nan=False)
    unit: Optional[str] = Field(default=None, alias="Unit")


class ActualResponse(BaseModel):
    """Body of the actual-readings endpoint"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    
    actual: List[Measurement] = Field(..., alias="Actual")


class MetricFamily(Enum):
    """Gauge families exported by this service"""
    VOLTAGE = "voltage"
    POWER = "power"
    ENERGY_TRANSPORTED = "energy_transported"
    GAS_DELIVERED = "gas_delivered"


@dataclass
class MetricValue:
    """Represents a classified value ready to be written to the registry"""
    family: MetricFamily
    value: float
    labels: Dict[str, str] = field(default_factory=dict)
    
    def __post_init__(self):
        # Ensure labels is never None
        if self.labels is None:
            self.labels = {}
