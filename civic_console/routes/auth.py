"""
Authentication endpoints - role resolution for the signed-in console user.

Sign-in itself happens against Firebase Auth in the browser; the console
sends the resulting ID token as a bearer token.
"""

from fastapi import APIRouter, Depends

from civic_console.models.user import ConsoleUser
from civic_console.routes.dependencies import get_current_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=ConsoleUser)
async def get_me(user: ConsoleUser = Depends(get_current_user)):
    """
    Resolve the caller's role (admin probe first, then supervisor).

    Returns:
        ConsoleUser: id, email, role and block_id

    Raises:
        401: no token, or the token was rejected
        403: no admin or supervisor record for this user
    """
    return user
