from rest_framework import authentication, exceptions, permissions

from .exceptions import Unauthorized
from .identity import Principal, get_identity_provider


class BearerTokenAuthentication(authentication.BaseAuthentication):
    """Authenticate ``Authorization: Bearer <id token>`` against the identity provider.

    ``request.user`` becomes a :class:`Principal`; requests without a bearer
    header stay anonymous so public endpoints keep working.
    """

    keyword = "Bearer"

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).decode("latin-1")
        if not header.startswith(self.keyword + " "):
            return None
        token = header[len(self.keyword) + 1:].strip()
        if not token:
            return None
        try:
            principal = Principal.from_claims(get_identity_provider().verify_token(token))
        except Unauthorized as exc:
            raise exceptions.AuthenticationFailed(exc.message) from exc
        return principal, token

    def authenticate_header(self, request):
        return self.keyword


def role_required(*roles):
    """Permission class admitting authenticated principals holding one of ``roles``."""

    class HasRole(permissions.BasePermission):
        message = "Forbidden: You need one of these roles: " + ", ".join(role.value for role in roles)

        def has_permission(self, request, view):
            user = request.user
            return bool(user and user.is_authenticated and getattr(user, "role", None) in roles)

    return HasRole
