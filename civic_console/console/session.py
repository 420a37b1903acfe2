"""
Console session - who is signed in, which role they hold, what they may see.

Role resolution mirrors the backend: probe /admin/me, then /supervisor/me.
If both fail the role stays None and every role-gated view is denied.
"""

from typing import Optional
import logging

from civic_console.console.api_client import ApiClient
from civic_console.console.dashboard import AdminDashboard, BaseDashboard, SupervisorDashboard
from civic_console.core.errors import ConsoleError, RoleUndetermined
from civic_console.core.settings import settings
from civic_console.models.user import ConsoleUser, UserRole

logger = logging.getLogger(__name__)

LANDING_VIEWS = {
    UserRole.ADMIN: "admin",
    UserRole.SUPERVISOR: "supervisor",
}


class ConsoleSession:
    """
    Holds the ID token and the resolved user for one sign-in.

    The user is fetched once per sign-in and discarded on sign-out.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_session=None,
        sign_out_on_role_failure: Optional[bool] = None,
        timeout: Optional[float] = None
    ):
        self.token: Optional[str] = None
        self.user: Optional[ConsoleUser] = None
        self.loading = False
        self.sign_out_on_role_failure = (
            settings.sign_out_on_role_failure if sign_out_on_role_failure is None else sign_out_on_role_failure
        )
        self.api = ApiClient(
            base_url=base_url,
            token_provider=lambda: self.token,
            session=http_session,
            timeout=timeout,
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def role(self) -> Optional[UserRole]:
        return self.user.role if self.user else None

    def sign_in(self, token: str) -> Optional[ConsoleUser]:
        """
        Start a session with a Firebase ID token and resolve the role.

        Returns:
            The resolved user, or None when no role could be determined
        """
        self.token = token
        self.user = None
        self.loading = True
        try:
            self.user = self._probe_roles()
        finally:
            self.loading = False

        if self.user is None and self.sign_out_on_role_failure:
            logger.info("[Session] Signing out after failed role lookup")
            self.sign_out()
        return self.user

    def _probe_roles(self) -> Optional[ConsoleUser]:
        try:
            user = self.api.get_admin_me()
            logger.info(f"[Session] Admin role fetched for {user.id}")
            return user
        except ConsoleError as admin_error:
            try:
                user = self.api.get_supervisor_me()
                logger.info(f"[Session] Supervisor role fetched for {user.id}")
                return user
            except ConsoleError as supervisor_error:
                logger.error(
                    f"[Session] Failed to fetch role from both endpoints: "
                    f"admin={admin_error.message!r} supervisor={supervisor_error.message!r}"
                )
                return None

    def sign_out(self) -> None:
        self.token = None
        self.user = None

    def can_access(self, required_role: Optional[UserRole] = None) -> bool:
        """Route guard: signed in, and holding `required_role` when one is given."""
        if self.loading or not self.is_authenticated:
            return False
        if required_role is None:
            return True
        return self.role is not None and self.role == required_role

    def landing_view(self) -> Optional[str]:
        """Where to send the user: "login", "admin", "supervisor", or None (access denied)."""
        if not self.is_authenticated:
            return "login"
        return LANDING_VIEWS.get(self.role)

    def dashboard(self) -> BaseDashboard:
        """Dashboard for the resolved role."""
        if self.role == UserRole.ADMIN:
            return AdminDashboard(self.api)
        if self.role == UserRole.SUPERVISOR:
            return SupervisorDashboard(self.api)
        raise RoleUndetermined("Access denied. Unable to determine your role.")
