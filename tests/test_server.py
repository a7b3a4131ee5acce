"""Tests for FastAPI server module"""
import itertools
import threading
from concurrent.futures import ThreadPoolExecutor

import httpx
from fastapi.testclient import TestClient

from app.server import MetricsServer
from collectors.dsmr import DsmrClient
from metrics.models import MetricFamily
from conftest import BASE_URL, SAMPLE_PAYLOAD, json_transport


class SwitchableTransport(httpx.MockTransport):
    """Mock upstream that can be toggled between healthy and failing"""
    
    def __init__(self, payload):
        self.payload = payload
        self.failing = False
        self.calls = 0
        super().__init__(self._handle)
    
    def _handle(self, request):
        self.calls += 1
        if self.failing:
            raise httpx.ConnectError("device offline", request=request)
        return httpx.Response(200, json=self.payload)


class TestMetricsServer:
    """Test scrape orchestration and HTTP endpoints"""
    
    def setup_method(self):
        self.transport = SwitchableTransport(SAMPLE_PAYLOAD)
    
    def make_server(self, config):
        server = MetricsServer(config, client=DsmrClient(BASE_URL, transport=self.transport))
        return server, TestClient(server.get_app())
    
    def test_metrics_endpoint_success(self, config):
        server, client = self.make_server(config)
        
        response = client.get("/metrics")
        
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        body = response.text
        assert 'dsmr_voltage{phase="l1"} 230.1' in body
        assert 'dsmr_power{direction="delivered",phase="l1"} 0.512' in body
        assert 'dsmr_power{direction="returned",phase="l2"} 0.125' in body
        assert 'dsmr_energy_transported{direction="delivered",tariff="low"} 1234.567' in body
        assert 'dsmr_energy_transported{direction="returned",tariff="high"} 34.25' in body
        assert "dsmr_gas_delivered 4321.123" in body
        assert "current_l1" not in body
        assert "timestamp" not in body
    
    def test_each_scrape_fetches_upstream(self, config):
        server, client = self.make_server(config)
        
        client.get("/metrics")
        client.get("/metrics")
        
        assert self.transport.calls == 2
    
    def test_upstream_failure_returns_server_error(self, config):
        """A failed upstream read fails the scrape instead of stopping the process"""
        server, client = self.make_server(config)
        self.transport.failing = True
        
        response = client.get("/metrics")
        
        assert response.status_code == 502
        assert server.scrape_errors == 1
    
    def test_upstream_failure_keeps_previous_values(self, config):
        server, client = self.make_server(config)
        client.get("/metrics")
        
        self.transport.failing = True
        assert client.get("/metrics").status_code == 502
        
        assert server.registry.get_value(MetricFamily.VOLTAGE, {"phase": "l1"}) == 230.1
        
        self.transport.failing = False
        response = client.get("/metrics")
        assert response.status_code == 200
        assert 'dsmr_voltage{phase="l1"} 230.1' in response.text
    
    def test_decode_failure_does_not_partially_update(self, config):
        payload = {"Actual": [
            {"Name": "voltage_l1", "Value": 240.0, "Unit": "V"},
            {"Name": "voltage_l2", "Value": "broken", "Unit": "V"},
        ]}
        server = MetricsServer(config, client=DsmrClient(BASE_URL, transport=json_transport(payload)))
        client = TestClient(server.get_app())
        
        response = client.get("/metrics")
        
        assert response.status_code == 502
        assert server.registry.get_value(MetricFamily.VOLTAGE, {"phase": "l1"}) is None
    
    def test_health_endpoint(self, config):
        server, client = self.make_server(config)
        
        assert client.get("/health").status_code == 200
        
        self.transport.failing = True
        client.get("/metrics")
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert "device offline" in response.json()["last_error"]
        
        self.transport.failing = False
        client.get("/metrics")
        assert client.get("/health").json()["status"] == "healthy"
    
    def test_status_endpoint(self, config):
        server, client = self.make_server(config)
        client.get("/metrics")
        self.transport.failing = True
        client.get("/metrics")
        
        data = client.get("/status").json()
        
        assert data["service"]["name"] == "dsmr-exporter"
        assert data["upstream"]["url"] == f"{BASE_URL}/api/v1/sm/actual"
        assert data["scrapes"]["total_scrapes"] == 2
        assert data["scrapes"]["scrape_errors"] == 1
        assert data["scrapes"]["success_rate"] == 50.0
    
    def test_scrape_metrics_exposed(self, config):
        server, client = self.make_server(config)
        
        body = client.get("/metrics").text
        
        assert "dsmr_scrapes_total 1.0" in body
        assert "dsmr_scrape_errors_total 0.0" in body
        assert "dsmr_scrape_duration_seconds_count 1.0" in body
    
    def test_failed_scrape_counted_in_metrics(self, config):
        server, client = self.make_server(config)
        client.get("/metrics")
        self.transport.failing = True
        client.get("/metrics")
        self.transport.failing = False
        
        body = client.get("/metrics").text
        
        assert "dsmr_scrapes_total 3.0" in body
        assert "dsmr_scrape_errors_total 1.0" in body
        assert server.registry.get_sample("scrape_duration_seconds_count") == 3.0
    
    def test_invalid_upstream_url_fails_scrape(self, config):
        """A URL the HTTP client cannot build fails the scrape like any other upstream error"""
        server = MetricsServer(config, client=DsmrClient("http://meter:abc", transport=self.transport))
        client = TestClient(server.get_app())
        
        response = client.get("/metrics")
        
        assert response.status_code == 502
        assert server.scrape_errors == 1
        assert server.registry.get_sample("scrape_errors_total") == 1.0
        assert client.get("/health").status_code == 503
    
    def test_request_logging_enabled(self, config):
        config.enable_request_logging = True
        server, client = self.make_server(config)
        
        response = client.get("/metrics")
        
        assert response.status_code == 200
        assert "x-process-time" in response.headers


class TestConcurrentScrapes:
    """Concurrent scrapes against a changing upstream"""
    
    def test_values_always_come_from_a_fetch(self, config):
        voltages = [220.0 + i for i in range(20)]
        counter = itertools.count()
        lock = threading.Lock()
        
        def handler(request):
            with lock:
                value = voltages[next(counter) % len(voltages)]
            return httpx.Response(200, json={"Actual": [
                {"Name": "voltage_l1", "Value": value, "Unit": "V"},
                {"Name": "power_delivered_l1", "Value": value / 100, "Unit": "kW"},
            ]})
        
        server = MetricsServer(config, client=DsmrClient(BASE_URL, transport=httpx.MockTransport(handler)))
        
        with ThreadPoolExecutor(max_workers=8) as pool:
            bodies = list(pool.map(lambda _: server.scrape(), range(40)))
        
        assert len(bodies) == 40
        assert server.scrape_count == 40
        assert server.scrape_errors == 0
        assert server.registry.get_value(MetricFamily.VOLTAGE, {"phase": "l1"}) in voltages
        assert server.registry.get_value(MetricFamily.POWER, {"direction": "delivered", "phase": "l1"}) in [v / 100 for v in voltages]
