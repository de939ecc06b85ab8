"""JWT Token Verification"""
import logging
import requests
from jose import jwt
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class JWTVerifier:
    """Verifies Keycloak-issued bearer tokens against the realm's JWKS"""

    def __init__(self, keycloak_url: str, realm: str, algorithm: str = "RS256", timeout: int = 10):
        self.algorithm = algorithm
        self.timeout = timeout
        self.issuer = f"{keycloak_url}/realms/{realm}"
        self.jwks_url = f"{self.issuer}/protocol/openid-connect/certs"
        self._jwks_cache: Optional[Dict] = None

    def _get_jwks(self, refresh: bool = False) -> Dict:
        """Fetch JWKS from Keycloak (cached until a key rotation is seen)"""
        if self._jwks_cache is None or refresh:
            response = requests.get(self.jwks_url, timeout=self.timeout)
            response.raise_for_status()
            self._jwks_cache = response.json()
        return self._jwks_cache

    def _knows_key(self, jwks: Dict, kid: Optional[str]) -> bool:
        return kid is None or any(key.get("kid") == kid for key in jwks.get("keys", []))

    def verify_and_decode(self, token: str) -> Dict:
        """
        Verify JWT token signature and decode payload

        Raises:
            JWTError: Token is invalid or expired
        """
        kid = jwt.get_unverified_header(token).get("kid")
        jwks = self._get_jwks()
        if not self._knows_key(jwks, kid):
            logger.info(f"Signing key {kid} not in cached JWKS, refreshing")
            jwks = self._get_jwks(refresh=True)

        return jwt.decode(
            token,
            jwks,
            algorithms=[self.algorithm],
            issuer=self.issuer,
            options={
                "verify_aud": False  # Keycloak doesn't always set audience
            },
        )
