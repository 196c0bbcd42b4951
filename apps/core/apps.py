from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

logger = logging.getLogger(__name__)

JWT_KEY_HINT = 'Generate a strong key with: python -c "import secrets; print(secrets.token_urlsafe(32))"'


def validate_jwt_secret(jwt_secret, secret_key):
    """
    Raise ImproperlyConfigured unless jwt_secret is usable for signing.

    Rules: set, at least 32 characters, different from SECRET_KEY, at least
    16 distinct characters and not a one or two character repetition.
    """
    if not jwt_secret:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set. {JWT_KEY_HINT}")

    if len(jwt_secret) < 32:
        raise ImproperlyConfigured(
            f"JWT_SECRET_KEY must be at least 32 characters long. "
            f"Current length: {len(jwt_secret)}. {JWT_KEY_HINT}"
        )

    if jwt_secret == secret_key:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {JWT_KEY_HINT}")

    unique_chars = len(set(jwt_secret))
    if unique_chars < 16:
        raise ImproperlyConfigured(
            f"JWT_SECRET_KEY has insufficient entropy. "
            f"Found only {unique_chars} unique characters, need at least 16. {JWT_KEY_HINT}"
        )

    pattern = jwt_secret[:2]
    if jwt_secret == (pattern * len(jwt_secret))[:len(jwt_secret)]:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY is a simple repeating pattern. {JWT_KEY_HINT}")


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """Refuse to start with an unusable JWT configuration."""
        validate_jwt_secret(
            getattr(settings, 'JWT_SECRET_KEY', None),
            getattr(settings, 'SECRET_KEY', None),
        )

        secret_key = getattr(settings, 'SECRET_KEY', '') or ''
        if len(secret_key) < 50:
            logger.warning(
                f"SECRET_KEY is shorter than recommended (current: {len(secret_key)}, recommended: 50+)"
            )
        logger.debug("JWT configuration validated")
