"""HTTP client for the DSMR logger API"""
import time
from typing import List, Optional
import httpx
from pydantic import ValidationError
from errors import DecodeError, UpstreamUnavailable
from metrics.models import ActualResponse, Measurement
from logging_config import get_logger


logger = get_logger(__name__)


ACTUAL_PATH = "/api/v1/sm/actual"


class DsmrClient:
    """Fetches the current readings from a DSMR logger.
    
    Every call to fetch() issues exactly one GET; there is no retry and no
    caching. The underlying httpx.Client is safe to share between threads.
    """
    
    def __init__(self, base_url: str, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip('/')
        self._client = httpx.Client(transport=transport)
    
    @property
    def url(self) -> str:
        return f"{self.base_url}{ACTUAL_PATH}"
    
    def fetch(self) -> List[Measurement]:
        """Fetch and validate all measurements, raising on any failure"""
        start_time = time.time()
        
        try:
            response = self._client.get(self.url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UpstreamUnavailable(f"Request to {self.url} failed: {e}") from e
        
        if not response.is_success:
            raise UpstreamUnavailable(
                f"DSMR logger returned HTTP {response.status_code} for {self.url}",
                status_code=response.status_code
            )
        
        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"Response from {self.url} is not valid JSON: {e}") from e
        
        try:
            measurements = ActualResponse.model_validate(payload).actual
        except ValidationError as e:
            raise DecodeError(f"Unexpected response shape from {self.url}: {e}") from e
        
        for measurement in measurements:
            logger.debug(
                "Fetched measurement",
                name=measurement.name,
                value=measurement.value,
                unit=measurement.unit,
                event_type="measurement_fetched"
            )
        
        logger.debug(
            "Fetched measurements",
            url=self.url,
            measurements_count=len(measurements),
            fetch_time_seconds=round(time.time() - start_time, 3),
            event_type="fetch_complete"
        )
        return measurements
    
    def close(self):
        """Release pooled connections"""
        self._client.close()
