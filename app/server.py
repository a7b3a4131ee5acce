"""FastAPI server setup and routes"""
import threading
import time
from typing import Optional
from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from config import Config
from collectors.dsmr import DsmrClient
from errors import ExporterError
from metrics.classifier import apply
from metrics.registry import DsmrMetricsRegistry
from logging_config import get_logger, log_scrape, log_error
from middleware.request_logging import RequestLoggingMiddleware


logger = get_logger(__name__)


class MetricsServer:
    """FastAPI server bridging the DSMR logger to Prometheus scrapes"""
    
    def __init__(self, config: Config, client: Optional[DsmrClient] = None, registry: Optional[DsmrMetricsRegistry] = None):
        self.config = config
        self.app = FastAPI(
            title="DSMR Metrics Exporter",
            version=config.service_version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )
        self.client = client or DsmrClient(config.dsmr_base_url)
        self.registry = registry or DsmrMetricsRegistry(config.metrics_namespace)
        
        # Scrape state, shared between worker threads
        self._state_lock = threading.Lock()
        self.start_time = time.time()
        self.last_scrape_time = 0
        self.last_scrape_ok = True
        self.last_error: Optional[str] = None
        self.scrape_count = 0
        self.scrape_errors = 0
        
        self._setup_middleware()
        self._setup_routes()
        self._setup_events()
    
    def _setup_middleware(self):
        if self.config.enable_request_logging:
            self.app.add_middleware(RequestLoggingMiddleware)
    
    def _setup_routes(self):
        """Setup FastAPI routes"""
        
        # Plain def: FastAPI runs it in its thread pool, one worker per scrape
        @self.app.get('/metrics', response_class=Response)
        def get_metrics():
            """Fetch from the DSMR logger, update gauges and render them"""
            try:
                body = self.scrape()
            except ExporterError as e:
                return Response(
                    f"# Scrape of DSMR logger failed: {type(e).__name__}\n",
                    status_code=502,
                    media_type='text/plain'
                )
            return Response(body, media_type=self.registry.content_type)
        
        @self.app.get('/health')
        def health_check():
            """Health check endpoint; unhealthy while the last scrape failed"""
            with self._state_lock:
                is_healthy = self.last_scrape_ok
                health_data = {
                    "status": "healthy" if is_healthy else "unhealthy",
                    "total_scrapes": self.scrape_count,
                    "scrape_errors": self.scrape_errors,
                    "last_error": self.last_error,
                }
            return JSONResponse(health_data, status_code=200 if is_healthy else 503)
        
        @self.app.get('/status')
        def get_status():
            """Detailed status information"""
            with self._state_lock:
                age = time.time() - self.last_scrape_time if self.last_scrape_time > 0 else None
                return {
                    "service": {
                        "name": self.config.service_name,
                        "version": self.config.service_version,
                        "uptime_seconds": round(time.time() - self.start_time, 1)
                    },
                    "upstream": {
                        "url": self.client.url
                    },
                    "scrapes": {
                        "last_scrape_seconds_ago": round(age, 1) if age is not None else None,
                        "total_scrapes": self.scrape_count,
                        "scrape_errors": self.scrape_errors,
                        "success_rate": round((self.scrape_count - self.scrape_errors) / max(self.scrape_count, 1) * 100, 1),
                        "last_error": self.last_error
                    }
                }
    
    def _setup_events(self):
        """Setup FastAPI shutdown event"""
        
        @self.app.on_event("shutdown")
        def shutdown_event():
            logger.info("Shutting down DSMR exporter", event_type="server_shutdown")
            self.client.close()
    
    def scrape(self) -> bytes:
        """Run one fetch, classify, render cycle.
        
        The fetch completes before any gauge is written, so a failed fetch
        leaves the gauges untouched. Errors are recorded and re-raised.
        """
        start_time = time.time()
        try:
            measurements = self.client.fetch()
        except ExporterError as e:
            log_error(logger, e, {"component": "scrape", "url": self.client.url}, exc_info=False)
            self.registry.record_scrape(time.time() - start_time, success=False)
            with self._state_lock:
                self.scrape_count += 1
                self.scrape_errors += 1
                self.last_scrape_ok = False
                self.last_error = str(e)
            raise
        
        applied = apply(measurements, self.registry)
        scrape_time = time.time() - start_time
        self.registry.record_scrape(scrape_time, success=True)
        body = self.registry.render()
        
        with self._state_lock:
            self.scrape_count += 1
            self.last_scrape_time = time.time()
            self.last_scrape_ok = True
            self.last_error = None
        
        log_scrape(logger, len(measurements), applied, scrape_time)
        return body
    
    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
