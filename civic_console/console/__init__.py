"""
Console client - the admin/supervisor dashboards on top of the API.

Usage:
    session = ConsoleSession(base_url="https://console-api.example.org")
    if session.sign_in(id_token) is not None:
        dashboard = session.dashboard()
        dashboard.refresh()
"""

from civic_console.console.api_client import ApiClient
from civic_console.console.dashboard import (
    AdminDashboard,
    ReportsDashboard,
    SupervisorDashboard,
    Toast,
)
from civic_console.console.session import ConsoleSession

__all__ = [
    "ApiClient",
    "AdminDashboard",
    "ConsoleSession",
    "ReportsDashboard",
    "SupervisorDashboard",
    "Toast",
]
