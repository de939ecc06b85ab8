"""Authentication Middleware"""
import logging
import secrets
from uuid import UUID
from jose import JWTError
from fastapi import HTTPException, Request, status, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from evv_service import config
from evv_service.auth.models import JWTPayload
from evv_service.auth.jwt_verifier import JWTVerifier
from evv_service.auth.permissions_manager import PermissionsManager

logger = logging.getLogger(__name__)

# Initialize components
security = HTTPBearer()
jwt_verifier = JWTVerifier(
    keycloak_url=config.KEYCLOAK_URL,
    realm=config.KEYCLOAK_REALM,
    algorithm=config.JWT_ALGORITHM,
)
permissions_manager = PermissionsManager()


async def verify_token(credentials: HTTPAuthorizationCredentials = Depends(security)) -> JWTPayload:
    """
    Verify JWT token from Keycloak and extract payload.

    Expected JWT claims:
    - sub: user_id
    - companyId (or organisationId): the agency the user belongs to
    - realm_access.roles: list of role names
    """
    try:
        payload = jwt_verifier.verify_and_decode(credentials.credentials)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}"
        )
    except Exception as e:
        logger.error(f"Token verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Token verification failed"
        )

    roles = payload.get("realm_access", {}).get("roles", [])

    company_claim = payload.get("companyId") or payload.get("organisationId")
    if not company_claim:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing companyId"
        )
    try:
        company_id = UUID(str(company_claim))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: malformed companyId"
        )

    return JWTPayload(
        sub=payload["sub"],
        company_id=company_id,
        roles=roles,
        permissions=permissions_manager.get_permissions_for_roles(roles),
        iat=payload.get("iat"),
        exp=payload.get("exp"),
    )


def check_permission(jwt_payload: JWTPayload, required_permission: str):
    """
    Check if user has required permission.

    Raises:
        HTTPException: If user lacks required permission
    """
    if required_permission not in jwt_payload.permissions:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing required permission: {required_permission}"
        )


async def verify_cron_secret(request: Request) -> None:
    """Guard for scheduler-triggered endpoints: Authorization: Bearer $CRON_SECRET"""
    expected = config.CRON_SECRET
    provided = request.headers.get("authorization", "")
    if not expected or not secrets.compare_digest(provided, f"Bearer {expected}"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
