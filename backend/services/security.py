"""
Security configuration and helpers for token signing and security event logging.
"""
import os
import secrets
import string
from typing import Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

WEAK_SECRETS = {"super-secret-key", "secret", "password", "key", "changeme"}

class SecurityConfig:
    """Token and header settings read from the environment."""

    def __init__(self):
        self.jwt_secret_key = self._get_or_generate_jwt_secret()
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.jwt_access_token_expire_minutes = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
        self.jwt_refresh_token_expire_days = int(os.getenv("JWT_REFRESH_TOKEN_EXPIRE_DAYS", "7"))
        self.password_min_length = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
        self.enable_security_headers = os.getenv("ENABLE_SECURITY_HEADERS", "true").lower() == "true"

        self._validate_config()

    def _get_or_generate_jwt_secret(self) -> str:
        """
        Get JWT secret from environment or generate a random one for this process.
        Tokens signed with a generated secret do not survive a restart.
        """
        secret = os.getenv("JWT_SECRET_KEY")

        if not secret:
            logger.warning("JWT_SECRET_KEY not set, generating a per-process secret")
            alphabet = string.ascii_letters + string.digits + "!@#$%^&*()_+-="
            return ''.join(secrets.choice(alphabet) for _ in range(64))

        if len(secret) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")

        if secret in WEAK_SECRETS:
            raise ValueError("JWT_SECRET_KEY cannot be a default or weak value")

        return secret

    def _validate_config(self):
        issues = []
        if self.jwt_algorithm not in ["HS256", "HS384", "HS512"]:
            issues.append(f"Unsupported JWT algorithm: {self.jwt_algorithm}")
        if self.jwt_access_token_expire_minutes > 60:
            issues.append("JWT access token expiration too long (>60 minutes) for production")
        if self.password_min_length < 8:
            issues.append("Password minimum length too short (<8 characters)")

        for issue in issues:
            logger.warning(f"Security configuration issue: {issue}")

class SecurityUtils:
    """Stateless helpers used by the API layer and services."""

    @staticmethod
    def generate_secure_token(length: int = 32) -> str:
        """Generate cryptographically secure URL-safe token."""
        return secrets.token_urlsafe(length)

    @staticmethod
    def get_client_ip(request) -> str:
        """Extract client IP address handling proxies and load balancers."""
        forwarded_ips = request.headers.get("X-Forwarded-For")
        if forwarded_ips:
            return forwarded_ips.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    @staticmethod
    def log_security_event(event_type: str, details: dict, user_id: Optional[int] = None,
                          client_ip: Optional[str] = None):
        """Log security events for monitoring and analysis."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "user_id": user_id,
            "client_ip": client_ip,
            "details": details
        }
        logger.info(f"SECURITY_EVENT: {log_entry}")

# Global security configuration instance
security_config = SecurityConfig()
