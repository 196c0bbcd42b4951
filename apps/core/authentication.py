"""
DRF authentication backed by TenantContextMiddleware.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    Hand DRF the user that TenantContextMiddleware resolved from the JWT.

    Token parsing happens once, in the middleware; this class only lifts
    the result into DRF so permission classes see request.user.
    """

    def authenticate(self, request):
        django_request = request._request
        user = getattr(django_request, 'user', None)
        if user is not None and getattr(user, 'is_authenticated', False):
            return (user, None)
        return None

    def authenticate_header(self, request):
        # Makes DRF answer unauthenticated requests with 401 rather than 403.
        return 'Bearer realm="api"'
