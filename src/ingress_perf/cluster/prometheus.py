"""Minimal Prometheus query client."""

import logging
from typing import Any, Dict, List, Optional

import requests
import urllib3

logger = logging.getLogger(__name__)


class PrometheusClient:
    """Instant queries against the Prometheus HTTP API."""

    def __init__(self, url: str, token: Optional[str] = None, verify: bool = False, timeout: float = 30.0):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.verify = verify
        if not verify:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def query(self, expr: str, time: Optional[float] = None) -> List[Dict[str, Any]]:
        """Run ``expr`` and return the ``result`` vector."""
        params: Dict[str, Any] = {"query": expr}
        if time is not None:
            params["time"] = time
        response = self.session.get(f"{self.url}/api/v1/query", params=params, timeout=self.timeout)
        response.raise_for_status()
        payload = response.json()
        if payload.get("status") != "success":
            raise RuntimeError(f"Prometheus query failed: {payload.get('error', 'unknown error')}")
        return payload["data"]["result"]

    def query_scalar(self, expr: str, time: Optional[float] = None) -> Optional[float]:
        """First value of ``expr`` as a float, None when the query is empty."""
        result = self.query(expr, time=time)
        if not result:
            return None
        return float(result[0]["value"][1])
