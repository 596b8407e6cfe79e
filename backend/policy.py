from dataclasses import dataclass

from .database import Role
from .errors import AuthorizationError, NotFoundError


@dataclass(frozen=True)
class Caller:
    """Identity resolved from a session token."""
    user_id: int
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.id, role=user.role)


def require_role(caller, *roles):
    allowed = {Role(role).value for role in roles}
    if caller is None or caller.role not in allowed:
        raise AuthorizationError('Insufficient permissions')


def require_owner(caller, blood_request, message='Request not found'):
    # not-owned is reported exactly like not-found
    if blood_request is None or blood_request.requester_id != caller.user_id:
        raise NotFoundError(message)
    return blood_request
