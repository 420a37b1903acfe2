"""
Auth Resolver - turns a Firebase ID token into a console user with a role.

Role probes run in a fixed order: admin first, then supervisor. Each probe
looks at `users/{uid}` (role field, or the legacy isAdmin flag) and then at
the role's own collection (`admins/{uid}`, `supervisors/{uid}`).

A user with no role record is denied, never defaulted to a role. Whether
that denial also ends the Firebase session is the ROLE_FAILURE_POLICY setting.
"""

from typing import Callable, Dict, Optional
import logging

from civic_console.config import firebase
from civic_console.core.errors import RoleUndetermined, Unauthenticated
from civic_console.core.settings import settings
from civic_console.models.user import ConsoleUser, UserRole
from civic_console.utils.firestore_helpers import document_to_dict, first_present

logger = logging.getLogger(__name__)

PROBE_ORDER = (UserRole.ADMIN, UserRole.SUPERVISOR)

ROLE_COLLECTIONS: Dict[UserRole, str] = {
    UserRole.ADMIN: "admins",
    UserRole.SUPERVISOR: "supervisors",
}


class AuthResolver:
    """
    Resolves identity tokens against Firebase Auth and the role collections.
    """

    def __init__(
        self,
        db=None,
        verify_token: Optional[Callable[[str], Dict]] = None,
        revoke_tokens: Optional[Callable[[str], None]] = None,
        sign_out_on_failure: Optional[bool] = None
    ):
        self._db = db
        self.verify_token = verify_token or firebase.verify_id_token
        self.revoke_tokens = revoke_tokens or firebase.revoke_refresh_tokens
        self.sign_out_on_failure = (
            settings.sign_out_on_role_failure if sign_out_on_failure is None else sign_out_on_failure
        )

    @property
    def db(self):
        if self._db is None:
            self._db = firebase.get_db()
        return self._db

    def decode(self, token: Optional[str]) -> Dict:
        """
        Verify the token and return its claims.

        Raises:
            Unauthenticated: no token, or Firebase rejected it
        """
        if not token or not token.strip():
            raise Unauthenticated("Not signed in")
        try:
            claims = self.verify_token(token.strip())
        except Exception as e:
            logger.warning(f"ID token rejected: {e}")
            raise Unauthenticated("Invalid or expired session token")
        if not claims or not claims.get("uid"):
            raise Unauthenticated("Session token carries no user id")
        return claims

    def _probe(self, uid: str, role: UserRole) -> Optional[Dict]:
        """Return the document proving `uid` has `role`, or None."""
        try:
            user_doc = document_to_dict(self.db.collection("users").document(uid).get())
            if user_doc is not None:
                stored_role = str(user_doc.get("role") or "").strip().upper()
                if stored_role == role.value:
                    return user_doc
                if role == UserRole.ADMIN and user_doc.get("isAdmin") is True:
                    return user_doc

            role_doc = document_to_dict(self.db.collection(ROLE_COLLECTIONS[role]).document(uid).get())
            if role_doc is not None:
                logger.debug(f"[Role] {uid} found in {ROLE_COLLECTIONS[role]}")
                return role_doc
        except Exception as e:
            logger.error(f"[Role] {role.value} probe failed for {uid}: {e}")
        return None

    def _build_user(self, claims: Dict, role: UserRole, record: Dict) -> ConsoleUser:
        return ConsoleUser(
            id=claims["uid"],
            email=claims.get("email") or record.get("email"),
            role=role,
            block_id=first_present(record, ("block_id", "blockId")),
        )

    def probe_role(self, token: Optional[str], role: UserRole) -> ConsoleUser:
        """
        Single role probe: succeed only if the caller holds `role`.

        A failed single probe never signs the user out; the console probes
        admin first, so supervisors fail that probe as a matter of course.
        """
        claims = self.decode(token)
        record = self._probe(claims["uid"], role)
        if record is None:
            raise RoleUndetermined(f"User is not a {role.value.lower()}")
        return self._build_user(claims, role, record)

    def resolve(self, token: Optional[str]) -> ConsoleUser:
        """
        Resolve the caller's role by probing admin, then supervisor.

        Raises:
            Unauthenticated: token missing or rejected
            RoleUndetermined: valid token, no role record anywhere
        """
        claims = self.decode(token)
        uid = claims["uid"]

        for role in PROBE_ORDER:
            record = self._probe(uid, role)
            if record is not None:
                logger.info(f"[Role] {uid} resolved as {role.value}")
                return self._build_user(claims, role, record)

        logger.warning(f"[Role] Failed to determine role for {uid} from both probes")
        self._on_role_failure(uid)
        raise RoleUndetermined("Unable to determine your role", detail={"signed_out": self.sign_out_on_failure})

    def _on_role_failure(self, uid: str) -> None:
        if not self.sign_out_on_failure:
            return
        try:
            self.revoke_tokens(uid)
            logger.info(f"[Role] Revoked refresh tokens for {uid}")
        except Exception as e:
            logger.error(f"[Role] Could not revoke tokens for {uid}: {e}")


# Global service instance (singleton pattern)
_auth_resolver: Optional[AuthResolver] = None


def get_auth_resolver() -> AuthResolver:
    global _auth_resolver
    if _auth_resolver is None:
        _auth_resolver = AuthResolver()
    return _auth_resolver
