"""
ResourceBuilder - Builds resource-centric least privilege view from a catalog

Converts the permission-centric catalog (permission -> path sets -> paths)
into one ProtectedResource per URL template, validating every contribution
as it is added.
"""

import logging
import re
from typing import Dict, List, Optional, Set

from scopelint.permissions_schema import (
    DEFAULT_LEAST_PRIVILEGE_MARKER, PermissionsDocument, PermissionsError
)
from scopelint.protected_resource import ProtectedResource

logger = logging.getLogger(__name__)

_PARAMETER_SEGMENT = re.compile(r'\{[^}]*\}')


def normalize_url(url: str) -> str:
    """Normalize a URL template for lookups (/Items/{item-id}/ -> /items/{})"""
    normalized = _PARAMETER_SEGMENT.sub('{}', url.strip()).lower()
    if len(normalized) > 1:
        normalized = normalized.rstrip('/')
    return normalized


class BuildResult:
    """Resources and deduplicated errors from one pass over a catalog"""

    def __init__(self, resources: Dict[str, ProtectedResource], errors: Set[PermissionsError]):
        self.resources = resources
        self.errors = errors

    def find_resource(self, url: str) -> Optional[ProtectedResource]:
        """Exact match first, then match ignoring case and parameter names"""
        if url in self.resources:
            return self.resources[url]
        target = normalize_url(url)
        for resource_url, resource in self.resources.items():
            if normalize_url(resource_url) == target:
                return resource
        return None

    def sorted_errors(self) -> List[PermissionsError]:
        return sorted(self.errors, key=lambda e: (e.path, e.error_code.value, e.message))


class ResourceBuilder:
    """
    Walks a permission catalog and builds ProtectedResource objects

    Each (permission, path set, path) triple is one contribution:
    1. Create the resource for the path on first use
    2. add_required_claims() for the contribution
    3. validate_least_privilege_permissions() for the contribution
    4. Union the returned errors into one set for the whole catalog

    Errors never stop the walk.
    """

    def __init__(self, least_privilege_marker: str = DEFAULT_LEAST_PRIVILEGE_MARKER):
        self.least_privilege_marker = least_privilege_marker

    def build(self, document: PermissionsDocument) -> BuildResult:
        resources: Dict[str, ProtectedResource] = {}
        errors: Set[PermissionsError] = set()

        logger.info(f"Building resources from {len(document.permissions)} permissions")

        for permission_name, permission in document.permissions.items():
            for path_set in permission.path_sets:
                for url in path_set.paths:
                    least_schemes = path_set.least_privilege_schemes(url, self.least_privilege_marker)

                    resource = resources.get(url)
                    if resource is None:
                        resource = ProtectedResource(url)
                        resources[url] = resource

                    resource.add_required_claims(permission_name, path_set, least_schemes)
                    errors |= resource.validate_least_privilege_permissions(
                        permission_name, path_set, least_schemes
                    )

        logger.info(f"Built {len(resources)} resources with {len(errors)} errors")
        for error in sorted(errors, key=lambda e: (e.path, e.message)):
            logger.warning(f"[{error.error_code.value}] {error.path}: {error.message}")

        return BuildResult(resources, errors)
