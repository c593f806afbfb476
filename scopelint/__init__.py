"""
Least Privilege Permission Checker

Aggregates a permission catalog per API resource and validates that every
(method, scheme) pair has a single, unambiguous least privileged permission.
"""

from .permissions_schema import (
    AcceptableClaim, PathSet, Permission, PermissionsDocument,
    PermissionsError, PermissionsErrorCode, SchemeType
)
from .protected_resource import ProtectedResource
from .resource_builder import BuildResult, ResourceBuilder
from .analyzer import PermissionsAnalyzer

__all__ = [
    'AcceptableClaim',
    'PathSet',
    'Permission',
    'PermissionsDocument',
    'PermissionsError',
    'PermissionsErrorCode',
    'SchemeType',
    'ProtectedResource',
    'BuildResult',
    'ResourceBuilder',
    'PermissionsAnalyzer',
]
