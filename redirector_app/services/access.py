from redirector_app.errors import Forbidden
from redirector_app.models import User, UserRole


def ensure_allowed(actor: User, required: UserRole = UserRole.MANAGER):
    """Raise Forbidden unless the actor's role covers the required role"""
    if not actor.role.is_allowed(required):
        raise Forbidden("Not allowed to access")
