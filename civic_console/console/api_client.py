"""
HTTP client for the console API.

The caller's identity is explicit: the client asks its token provider for a
Firebase ID token on every request and sends it as a bearer token. Error
responses are mapped back onto the shared error taxonomy.
"""

from typing import Callable, Dict, List, Optional
import logging

import requests

from civic_console.core.errors import BackendError, error_for_response
from civic_console.core.settings import settings
from civic_console.models.report import CompleteReportResponse, HotspotCell, Report
from civic_console.models.user import ConsoleUser

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]


class ApiClient:
    """
    Thin wrapper over a requests-compatible session.

    Args:
        base_url: API root, defaults to CONSOLE_API_BASE_URL
        token_provider: returns the current ID token, or None when signed out
        session: anything with requests.Session's request() signature
        timeout: per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        session=None,
        timeout: Optional[float] = None
    ):
        self.base_url = (base_url or settings.CONSOLE_API_BASE_URL).rstrip("/")
        self.token_provider = token_provider or (lambda: None)
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.CONSOLE_TIMEOUT_SECONDS

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        try:
            token = self.token_provider()
        except Exception as e:
            logger.error(f"[API] Failed to get ID token: {e}")
            token = None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        if "params" in kwargs:
            kwargs["params"] = {k: v for k, v in kwargs["params"].items() if v is not None and v != ""}
        try:
            resp = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"[API] {method} {path} failed: {e}")
            raise BackendError(f"Could not reach the console API: {e}")

        if not 200 <= resp.status_code < 300:
            try:
                body = resp.json()
            except ValueError:
                body = {"detail": resp.text or None}
            error = error_for_response(resp.status_code, body)
            logger.warning(f"[API] {method} {path} → {resp.status_code}: {error.message}")
            raise error

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            raise BackendError(f"Malformed JSON from {method} {path}")

    # Auth

    def get_admin_me(self) -> ConsoleUser:
        return ConsoleUser.model_validate(self._request("GET", "/admin/me"))

    def get_supervisor_me(self) -> ConsoleUser:
        return ConsoleUser.model_validate(self._request("GET", "/supervisor/me"))

    # Admin

    def list_admin_reports(self, **filters) -> List[Report]:
        data = self._request("GET", "/admin/reports", params=filters)
        return [Report.model_validate(item) for item in data or []]

    def start_work(self, report_id: str, estimated_time: str) -> Report:
        data = self._request("PATCH", f"/admin/report/{report_id}/start", json={"estimated_time": estimated_time})
        return Report.model_validate(data)

    def classify_evidence(self, report_id: str, filename: str, data: bytes, content_type: str) -> Dict:
        return self._request(
            "POST", f"/admin/report/{report_id}/classify",
            files={"image": (filename, data, content_type)},
        )

    def resolve_report(self, report_id: str, image_url: str, resolved_class: Optional[str] = None) -> Report:
        data = self._request(
            "PATCH", f"/admin/report/{report_id}/resolve",
            json={"image_url": image_url, "resolved_class": resolved_class},
        )
        return Report.model_validate(data)

    def hotspots(self) -> List[HotspotCell]:
        return [HotspotCell.model_validate(item) for item in self._request("GET", "/admin/hotspots") or []]

    # Supervisor

    def list_supervisor_reports(self) -> List[Report]:
        return [Report.model_validate(item) for item in self._request("GET", "/supervisor/reports") or []]

    def assign_worker(self, report_id: str, worker_name: str) -> Report:
        data = self._request(
            "PATCH", f"/supervisor/report/{report_id}/assign-worker", json={"worker_name": worker_name}
        )
        return Report.model_validate(data)

    def upload_evidence(self, report_id: str, filename: str, data: bytes, content_type: str) -> str:
        body = self._request(
            "POST", f"/supervisor/report/{report_id}/evidence",
            files={"image": (filename, data, content_type)},
        )
        return (body or {}).get("image_url") or ""

    def complete_report(self, report_id: str, image_url: str) -> CompleteReportResponse:
        data = self._request("PATCH", f"/supervisor/report/{report_id}/complete", json={"image_url": image_url})
        return CompleteReportResponse.model_validate(data)

    # Citizen-owned

    def my_reports(self) -> List[Report]:
        return [Report.model_validate(item) for item in self._request("GET", "/reports/mine") or []]
