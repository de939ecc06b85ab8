"""Permissions Management"""
import logging
import yaml
from pathlib import Path
from typing import Dict, List, Optional, Union

from evv_service import config

logger = logging.getLogger(__name__)

DEFAULT_PERMISSIONS_FILE = Path(__file__).parent.parent.parent / "permissions.yml"


class PermissionsManager:
    """Maps Keycloak realm roles to service permissions from permissions.yml"""

    def __init__(self, permissions_file_path: Optional[Union[str, Path]] = None):
        if permissions_file_path is None:
            permissions_file_path = config.PERMISSIONS_FILE or DEFAULT_PERMISSIONS_FILE

        self.role_permissions = self._load_permissions(Path(permissions_file_path))

    def _load_permissions(self, file_path: Path) -> Dict[str, List[str]]:
        """Load role-to-permissions mapping from YAML file"""
        try:
            with open(file_path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Could not load permissions from {file_path}: {e}")
            return {}
        return data.get('roles', {}) or {}

    def get_permissions_for_roles(self, roles: List[str]) -> List[str]:
        """Convert list of roles to a sorted list of permissions"""
        permissions = set()
        for role in roles:
            permissions.update(self.role_permissions.get(role) or [])
        return sorted(permissions)
