"""
ProtectedResource - Resource-centric view of a permission catalog

The catalog lists, per permission, the paths it grants access to. A
ProtectedResource inverts that for one URL template:

    method -> scheme -> [AcceptableClaim, ...]

and validates that every (method, scheme) pair has exactly one least
privileged permission.
"""

import logging
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

from scopelint.permissions_schema import (
    AcceptableClaim, PathSet, PermissionsError, PermissionsErrorCode,
    SchemeType, scheme_sort_key
)

logger = logging.getLogger(__name__)

PERMISSIONS_STUB = "**TODO: Provide applicable permissions.**"

INVALID_LEAST_PRIVILEGE_SCHEME_MESSAGE = (
    "Least privilege scheme(s) '{0}' for permission '{1}' do not match any of the "
    "supported schemes '{2}'."
)
DUPLICATE_LEAST_PRIVILEGE_SCOPES_MESSAGE = (
    "Found duplicate least privilege scopes '{0}' for scheme '{1}' and method '{2}'."
)

# Operation tokens that identify a read permission (e.g. Files.Read, User.ReadBasic.All)
READ_OPERATIONS = ("Read", "ReadBasic")


# ============================================================================
# Accumulated state
# ============================================================================

class MethodClaims:
    """Claims for one HTTP method, grouped by scheme. Append-only."""

    def __init__(self):
        self._claims: Dict[str, List[AcceptableClaim]] = {}

    def append(self, scheme: str, claim: AcceptableClaim):
        self._claims.setdefault(scheme, []).append(claim)

    def claims(self, scheme: str) -> Tuple[AcceptableClaim, ...]:
        return tuple(self._claims.get(scheme, ()))

    def schemes(self) -> List[str]:
        """Schemes in the fixed presentation order"""
        return sorted(self._claims, key=scheme_sort_key)

    def items(self) -> Iterator[Tuple[str, Tuple[AcceptableClaim, ...]]]:
        for scheme, claims in self._claims.items():
            yield scheme, tuple(claims)

    def __contains__(self, scheme: str) -> bool:
        return scheme in self._claims

    def __len__(self) -> int:
        return len(self._claims)


class SupportedMethods:
    """Claims for every method of a resource. Append-only."""

    def __init__(self):
        self._methods: Dict[str, MethodClaims] = {}

    def append(self, method: str, scheme: str, claim: AcceptableClaim):
        if method not in self._methods:
            self._methods[method] = MethodClaims()
        self._methods[method].append(scheme, claim)

    def get(self, method: str) -> Optional[MethodClaims]:
        return self._methods.get(method)

    def claims(self, method: str, scheme: str) -> Tuple[AcceptableClaim, ...]:
        method_claims = self._methods.get(method)
        if method_claims is None:
            return ()
        return method_claims.claims(scheme)

    def methods(self) -> List[str]:
        """Methods in lexicographic order"""
        return sorted(self._methods)

    def items(self) -> Iterator[Tuple[str, MethodClaims]]:
        return iter(self._methods.items())

    def __contains__(self, method: str) -> bool:
        return method in self._methods

    def __len__(self) -> int:
        return len(self._methods)


class LeastPrivilegeIndex:
    """
    Permissions flagged least privileged, per method and scheme

    Entries only ever grow by set union, so the final index does not depend
    on the order contributions were validated in.
    """

    def __init__(self):
        self._entries: Dict[str, Dict[str, Set[str]]] = {}

    def add(self, method: str, scheme: str, permission: str):
        self._entries.setdefault(method, {}).setdefault(scheme, set()).add(permission)

    def get(self, method: str, scheme: str) -> FrozenSet[str]:
        return frozenset(self._entries.get(method, {}).get(scheme, ()))

    def entries(self) -> Iterator[Tuple[str, str, FrozenSet[str]]]:
        for method, schemes in self._entries.items():
            for scheme, permissions in schemes.items():
                yield method, scheme, frozenset(permissions)

    def duplicates(self) -> Iterator[Tuple[str, str, FrozenSet[str]]]:
        """(method, scheme, permissions) entries holding more than one permission"""
        for method, scheme, permissions in self.entries():
            if len(permissions) > 1:
                yield method, scheme, permissions


class PermissionsTableSummary(BaseModel):
    """Permissions per scheme bucket for one method, least privileged first"""
    method: str
    delegated_work: List[str] = Field(default_factory=list)
    delegated_personal: List[str] = Field(default_factory=list)
    application: List[str] = Field(default_factory=list)


def operation_of(permission: str) -> str:
    """Operation token of a permission name (Files.ReadWrite.All -> ReadWrite)"""
    parts = permission.split('.')
    return parts[1] if len(parts) > 1 else ''


def is_false_positive_duplicate(method: str, permissions: Iterable[str]) -> bool:
    """
    Check if a duplicate least privilege entry is a false positive

    GET operations can also be done with ReadWrite permissions, so several
    permissions may be flagged for GET. That is fine as long as exactly one
    of them is a Read/ReadBasic permission.
    """
    if method != "GET":
        return False
    read_count = sum(1 for permission in permissions if operation_of(permission) in READ_OPERATIONS)
    return read_count == 1


def order_least_first(claims: Iterable[AcceptableClaim]) -> List[AcceptableClaim]:
    return sorted(claims, key=lambda claim: not claim.least)


# ============================================================================
# Resource
# ============================================================================

class ProtectedResource:
    """
    Accumulates claims for one URL template and validates least privilege

    Built by a sequence of add_required_claims() and
    validate_least_privilege_permissions() calls, one pair per
    (permission, path set) contribution, then queried for reports.
    """

    def __init__(self, url: str):
        self.url = url
        self.supported_methods = SupportedMethods()
        # (permission, scheme) -> methods the permission is used with
        self.permission_methods: Dict[Tuple[str, str], Set[str]] = {}
        self.least_privilege_index = LeastPrivilegeIndex()

    def add_required_claims(self, permission: str, path_set: PathSet,
                            least_privileged_schemes: Iterable[str]):
        """
        Record that permission grants access to every method x scheme of path_set

        Calling this twice for the same contribution appends duplicate claims.
        """
        least_schemes = set(least_privileged_schemes)
        for method in path_set.methods:
            for scheme in path_set.scheme_keys:
                self.permission_methods.setdefault((permission, scheme), set()).add(method)
                claim = AcceptableClaim(
                    permission=permission,
                    also_requires=tuple(path_set.also_requires),
                    least=scheme in least_schemes
                )
                self.supported_methods.append(method, scheme, claim)

        logger.debug(f"{self.url}: added {permission} for {path_set.methods} x {path_set.scheme_keys}")

    def validate_least_privilege_permissions(self, permission: str, path_set: PathSet,
                                             least_privileged_schemes: Iterable[str]) -> Set[PermissionsError]:
        """
        Update the least privilege index with a contribution and validate it

        Duplicate detection covers everything accumulated so far, not just this
        contribution. Errors are returned, never raised.
        """
        least_schemes = list(least_privileged_schemes)
        self._compute_least_privilege_entries(permission, path_set, least_schemes)
        errors = self._validate_mismatched_schemes(permission, path_set, least_schemes)
        errors |= self._validate_duplicated_scopes()
        return errors

    def _compute_least_privilege_entries(self, permission: str, path_set: PathSet,
                                         least_privileged_schemes: List[str]):
        for method in path_set.methods:
            for scheme in path_set.scheme_keys:
                if scheme in least_privileged_schemes:
                    self.least_privilege_index.add(method, scheme, permission)

    def _validate_mismatched_schemes(self, permission: str, path_set: PathSet,
                                     least_privileged_schemes: List[str]) -> Set[PermissionsError]:
        mismatched = []
        for scheme in least_privileged_schemes:
            if scheme not in path_set.scheme_keys and scheme not in mismatched:
                mismatched.append(scheme)

        if not mismatched:
            return set()

        return {
            PermissionsError(
                path=self.url,
                error_code=PermissionsErrorCode.INVALID_LEAST_PRIVILEGE_SCHEME,
                message=INVALID_LEAST_PRIVILEGE_SCHEME_MESSAGE.format(
                    ', '.join(mismatched), permission, ', '.join(path_set.scheme_keys)
                ),
            )
        }

    def _validate_duplicated_scopes(self) -> Set[PermissionsError]:
        errors = set()
        for method, scheme, permissions in self.least_privilege_index.duplicates():
            if is_false_positive_duplicate(method, permissions):
                continue
            errors.add(PermissionsError(
                path=self.url,
                error_code=PermissionsErrorCode.DUPLICATE_LEAST_PRIVILEGE_SCOPES,
                message=DUPLICATE_LEAST_PRIVILEGE_SCOPES_MESSAGE.format(
                    ', '.join(sorted(permissions)), scheme, method
                ),
            ))
        return errors

    # ========================================================================
    # QUERIES
    # ========================================================================

    def disambiguate(self, method: str, scheme: str, permissions: Set[str]) -> Set[str]:
        """
        Resolve tied least privileged permissions

        A candidate used with this method only (under this scheme) wins. If
        none qualifies the candidates are returned unchanged.
        """
        if len(permissions) > 1:
            for permission in sorted(permissions):
                methods = self.permission_methods.get((permission, scheme))
                if methods is not None and methods == {method}:
                    return {permission}
        return permissions

    def resolve_least_privilege(self, method: str, scheme: str) -> Set[str]:
        """Disambiguated least privileged permissions for one method and scheme"""
        claims = self.supported_methods.claims(method, scheme)
        permissions = {claim.permission for claim in claims if claim.least}
        if not permissions:
            return set()
        return self.disambiguate(method, scheme, permissions)

    def fetch_least_privilege(self, method: Optional[str] = None,
                              scheme: Optional[str] = None) -> str:
        """
        Textual least privilege report, optionally filtered by method/scheme

        Methods are listed lexicographically and schemes in SchemeType order.
        Pairs with no least privileged permission are left out.
        """
        least_privilege: Dict[str, Dict[str, Set[str]]] = {}

        if method is not None and scheme is not None:
            pairs = [(method, scheme)]
        elif method is not None:
            method_claims = self.supported_methods.get(method)
            pairs = [(method, s) for s in method_claims.schemes()] if method_claims else []
        elif scheme is not None:
            pairs = [(m, scheme) for m in self.supported_methods.methods()]
        else:
            pairs = [
                (m, s)
                for m in self.supported_methods.methods()
                for s in self.supported_methods.get(m).schemes()
            ]

        for pair_method, pair_scheme in pairs:
            permissions = self.resolve_least_privilege(pair_method, pair_scheme)
            if permissions:
                least_privilege.setdefault(pair_method, {})[pair_scheme] = permissions

        lines = []
        for method_name, schemes in least_privilege.items():
            lines.append('')
            lines.append(method_name)
            for scheme_name, permissions in schemes.items():
                lines.append(f"|{scheme_name} |{';'.join(sorted(permissions))}|")
                lines.append('')
            lines.append('')

        return ''.join(line + '\n' for line in lines)

    def permissions_table_summary(self, method: str) -> PermissionsTableSummary:
        """Delegated work / delegated personal / application permissions for a method"""
        method_claims = self.supported_methods.get(method) or MethodClaims()

        def bucket(scheme_type: SchemeType) -> List[str]:
            if scheme_type.value not in method_claims:
                return [PERMISSIONS_STUB]
            ordered = []
            for claim in order_least_first(method_claims.claims(scheme_type.value)):
                if claim.permission not in ordered:
                    ordered.append(claim.permission)
            return ordered

        return PermissionsTableSummary(
            method=method,
            delegated_work=bucket(SchemeType.DELEGATED_WORK),
            delegated_personal=bucket(SchemeType.DELEGATED_PERSONAL),
            application=bucket(SchemeType.APPLICATION),
        )

    def to_dict(self) -> Dict:
        """Serialized resource; claims are listed least privileged first"""
        return {
            'url': self.url,
            'methods': {
                method: {
                    scheme: [claim.to_dict() for claim in order_least_first(claims)]
                    for scheme, claims in method_claims.items()
                }
                for method, method_claims in self.supported_methods.items()
            },
        }
