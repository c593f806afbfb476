"""
Pydantic schema for permission catalogs

The catalog is permission-centric: every permission scope lists the path sets
(methods x schemes x paths) it grants access to. The core inverts this into a
resource-centric view (see protected_resource.py).

This is the single source of truth for the catalog and error record formats.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Schemes
# ============================================================================

class SchemeType(str, Enum):
    """Authentication scheme categories a permission is evaluated under"""
    DELEGATED_WORK = "DelegatedWork"  # Signed-in work or school account
    DELEGATED_PERSONAL = "DelegatedPersonal"  # Signed-in personal account
    APPLICATION = "Application"  # App-only, no signed-in user
    RESOURCE_SPECIFIC_CONSENT = "ResourceSpecificConsent"  # Consent granted per resource instance


# Fixed presentation order for schemes. Lower sorts first.
SCHEME_PRIORITY: Dict[str, int] = {
    SchemeType.DELEGATED_WORK.value: 0,
    SchemeType.DELEGATED_PERSONAL.value: 1,
    SchemeType.APPLICATION.value: 2,
    SchemeType.RESOURCE_SPECIFIC_CONSENT.value: 3,
}


def scheme_sort_key(scheme: str) -> Tuple[int, str]:
    """Sort key for schemes; unknown schemes go last, alphabetically"""
    return (SCHEME_PRIORITY.get(scheme, len(SCHEME_PRIORITY)), scheme)


DEFAULT_LEAST_PRIVILEGE_MARKER = "least="


# ============================================================================
# Claims and path declarations
# ============================================================================

class AcceptableClaim(BaseModel):
    """One declared use of a permission for a scheme on an operation"""
    permission: str = Field(..., min_length=1)
    also_requires: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Auxiliary scopes that must be granted together with the permission"
    )
    least: bool = Field(
        False,
        description="True if the catalog flags this permission as least privileged"
    )

    model_config = ConfigDict(frozen=True)

    def to_dict(self) -> Dict:
        return {
            'permission': self.permission,
            'coRequired': list(self.also_requires),
            'least': self.least,
        }


class PathSet(BaseModel):
    """Methods and schemes shared by a group of paths for one permission"""
    scheme_keys: List[str] = Field(default_factory=list, alias="schemeKeys")
    methods: List[str] = Field(default_factory=list)
    paths: Dict[str, str] = Field(
        default_factory=dict,
        description="URL template -> annotation (e.g. 'least=DelegatedWork,Application')"
    )
    also_requires: List[str] = Field(default_factory=list, alias="alsoRequires")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('methods')
    @classmethod
    def _upper_methods(cls, value: List[str]) -> List[str]:
        return [method.upper() for method in value]

    def least_privilege_schemes(self, url: str,
                                marker: str = DEFAULT_LEAST_PRIVILEGE_MARKER) -> List[str]:
        """
        Parse the least privilege annotation of a path

        Annotations look like "least=DelegatedWork,Application". Several
        annotations may be separated by ';' or whitespace.

        Returns:
            Scheme names in declaration order, without duplicates
        """
        annotation = self.paths.get(url) or ''
        schemes: List[str] = []
        for token in annotation.replace(';', ' ').split():
            if not token.startswith(marker):
                continue
            for scheme in token[len(marker):].split(','):
                scheme = scheme.strip()
                if scheme and scheme not in schemes:
                    schemes.append(scheme)
        return schemes


# ============================================================================
# Catalog
# ============================================================================

class SchemeDescription(BaseModel):
    """Consent metadata for a permission under one scheme"""
    admin_display_name: Optional[str] = Field(None, alias="adminDisplayName")
    admin_description: Optional[str] = Field(None, alias="adminDescription")
    user_display_name: Optional[str] = Field(None, alias="userDisplayName")
    user_description: Optional[str] = Field(None, alias="userDescription")
    requires_admin_consent: bool = Field(False, alias="requiresAdminConsent")
    privilege_level: Optional[int] = Field(None, alias="privilegeLevel")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Permission(BaseModel):
    """A permission scope and every path set it grants access to"""
    authorization_type: Optional[str] = Field(None, alias="authorizationType")
    schemes: Dict[str, SchemeDescription] = Field(default_factory=dict)
    path_sets: List[PathSet] = Field(default_factory=list, alias="pathSets")
    note: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class PermissionsDocument(BaseModel):
    """Complete permission catalog"""
    schema_uri: Optional[str] = Field(
        "https://microsoftgraph.github.io/msgraph-metadata/graph-permissions-schema.json",
        alias="$schema"
    )
    permissions: Dict[str, Permission] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Validation errors
# ============================================================================

class PermissionsErrorCode(str, Enum):
    """Kinds of catalog consistency errors"""
    INVALID_LEAST_PRIVILEGE_SCHEME = "InvalidLeastPrivilegeScheme"
    DUPLICATE_LEAST_PRIVILEGE_SCOPES = "DuplicateLeastPrivilegeScopes"


class PermissionsError(BaseModel):
    """
    A consistency error found on a resource

    Frozen so that errors compare and hash by content; collecting them in a
    set removes repeats from later validation passes.
    """
    path: str = Field(..., description="URL template of the resource")
    error_code: PermissionsErrorCode
    message: str

    model_config = ConfigDict(frozen=True)

    def to_dict(self) -> Dict:
        return {
            'path': self.path,
            'errorCode': self.error_code.value,
            'message': self.message,
        }


# ============================================================================
# Helper Functions
# ============================================================================

def load_document(filepath: str) -> PermissionsDocument:
    """
    Load and validate a permission catalog JSON file.

    Raises ValidationError if the file doesn't match the schema.
    """
    import json

    with open(filepath, encoding='utf-8') as f:
        data = json.load(f)

    return PermissionsDocument.model_validate(data)


def validate_document_dict(document_dict: dict) -> PermissionsDocument:
    """Validate a catalog dictionary against the schema."""
    return PermissionsDocument.model_validate(document_dict)


def dump_document(document: PermissionsDocument) -> dict:
    """Serialize a catalog back to its on-disk JSON shape"""
    return document.model_dump(by_alias=True, exclude_none=True)


def generate_json_schema(output_file: str = "schema/permissions-schema.json"):
    """
    Generate JSON schema file from Pydantic models.

    Run this after updating the Pydantic models to regenerate the JSON schema.
    """
    import json
    from pathlib import Path

    schema = PermissionsDocument.model_json_schema(by_alias=True)
    schema["$schema"] = "http://json-schema.org/draft-07/schema#"

    output_path = Path(output_file)
    output_path.parent.mkdir(exist_ok=True, parents=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(schema, f, indent=2)

    return output_path
