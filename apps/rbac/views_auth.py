"""
Authentication REST API views.

Implements endpoints for:
- User registration
- Login
- Current user profile
"""
import logging

from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from drf_spectacular.utils import extend_schema, OpenApiExample
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import APIErrorHandler
from apps.core.logging import SecurityLogger
from apps.rbac.serializers import (
    RegistrationSerializer, LoginSerializer, UserSerializer, TenantUserSerializer
)
from apps.rbac.services import AuthService
from apps.tenants.services import TenantService

logger = logging.getLogger(__name__)


def _rate_limited(request, endpoint, limit, retry_after):
    """429 envelope for a request django-ratelimit flagged as limited."""
    SecurityLogger.log_rate_limit_exceeded(
        endpoint=endpoint,
        ip_address=request.META.get('REMOTE_ADDR', 'unknown'),
        user_email=request.data.get('email') if hasattr(request.data, 'get') else None,
        limit=limit,
    )
    return APIErrorHandler.rate_limit_exceeded(retry_after, request)


@extend_schema(
    tags=['Authentication'],
    summary='Register new user',
    description='''
Register a new user account together with a first tenant.

Creates:
- User account with hashed password
- Tenant with a unique slug
- Primary TenantUser membership with the Owner role

Rate limited to 3 requests per hour per IP.
    ''',
    request=RegistrationSerializer,
    responses={201: UserSerializer, 400: None, 409: None, 429: None},
    examples=[
        OpenApiExample(
            'Registration Request',
            value={
                'email': 'owner@example.com',
                'password': 'SecurePass123!',
                'first_name': 'Ada',
                'last_name': 'Lovelace',
                'business_name': 'Analytical Engines Ltd'
            },
            request_only=True
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='3/h', method='POST', block=False), name='dispatch')
class RegistrationView(APIView):
    """
    POST /v1/auth/register

    No authentication required.
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return _rate_limited(request, '/v1/auth/register', '3/hour per IP', 3600)

        serializer = RegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.register_user(request=request, **serializer.validated_data)
        tenant = result['tenant']

        return Response(
            {
                'user': UserSerializer(result['user']).data,
                'tenant': {'id': str(tenant.id), 'name': tenant.name, 'slug': tenant.slug},
                'token': result['token'],
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Authentication'],
    summary='Login',
    description='''
Authenticate with email and password and receive a JWT.

Send the token as `Authorization: Bearer <token>` and pick a tenant with
`X-TENANT-ID`.

Rate limited to 5 requests per minute per IP and 10 per hour per email.
    ''',
    request=LoginSerializer,
    responses={200: UserSerializer, 401: None, 429: None},
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
@method_decorator(ratelimit(key='post:email', rate='10/h', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    POST /v1/auth/login
    """
    authentication_classes = []
    permission_classes = []

    def post(self, request):
        if getattr(request, 'limited', False):
            return _rate_limited(request, '/v1/auth/login', '5/min per IP, 10/hour per email', 60)

        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AuthService.login(
            serializer.validated_data['email'],
            serializer.validated_data['password'],
            request=request,
        )
        if result is None:
            return APIErrorHandler.unauthorized('Invalid email or password', request)

        memberships = TenantService.user_tenants(result['user'])
        return Response(
            {
                'token': result['token'],
                'user': UserSerializer(result['user']).data,
                'tenants': TenantUserSerializer(memberships, many=True).data,
            },
            status=status.HTTP_200_OK
        )


class MeView(APIView):
    """
    GET /v1/auth/me

    Current user with memberships and the scopes of the active tenant.
    """
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=['Authentication'],
        summary='Current user',
        responses={200: UserSerializer},
    )
    def get(self, request):
        tenant = getattr(request, 'tenant', None)
        return Response({
            'user': UserSerializer(request.user).data,
            'tenants': TenantUserSerializer(TenantService.user_tenants(request.user), many=True).data,
            'current_tenant': str(tenant.id) if tenant else None,
            'scopes': sorted(getattr(request, 'scopes', None) or []),
        })
