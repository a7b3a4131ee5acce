"""Shared fixtures for DSMR exporter tests"""
import json
import httpx
import pytest

from config import Config


BASE_URL = "http://dsmr.test"


SAMPLE_PAYLOAD = {
    "Actual": [
        {"Name": "timestamp", "Value": 240101120000, "Unit": ""},
        {"Name": "energy_delivered_tariff1", "Value": 1234.567, "Unit": "kWh"},
        {"Name": "energy_delivered_tariff2", "Value": 2345.678, "Unit": "kWh"},
        {"Name": "energy_returned_tariff1", "Value": 12.5, "Unit": "kWh"},
        {"Name": "energy_returned_tariff2", "Value": 34.25, "Unit": "kWh"},
        {"Name": "power_delivered_l1", "Value": 0.512, "Unit": "kW"},
        {"Name": "power_returned_l2", "Value": 0.125, "Unit": "kW"},
        {"Name": "voltage_l1", "Value": 230.1, "Unit": "V"},
        {"Name": "voltage_l2", "Value": 229.8, "Unit": "V"},
        {"Name": "gas_delivered", "Value": 4321.123, "Unit": "m3"},
        {"Name": "current_l1", "Value": 2, "Unit": "A"},
    ]
}


def json_transport(payload, status_code=200):
    """MockTransport answering every request with the given JSON payload"""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=json.dumps(payload).encode(), headers={"content-type": "application/json"})
    return httpx.MockTransport(handler)


@pytest.fixture
def config():
    return Config(dsmr_base_url=BASE_URL, enable_request_logging=False)
