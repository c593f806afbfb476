#!/usr/bin/env python3
"""
Tests for permissions_schema.py

Tests catalog validation, path annotations, scheme ordering and error records.
"""

import json
import os
import sys
import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scopelint.permissions_schema import (
    AcceptableClaim, PathSet, PermissionsError, PermissionsErrorCode, SchemeType,
    dump_document, generate_json_schema, load_document, scheme_sort_key,
    validate_document_dict
)


class TestPathSet:
    """Test path set parsing"""

    @staticmethod
    def test_least_privilege_annotation():
        path_set = PathSet.model_validate({
            "schemeKeys": ["DelegatedWork", "Application"],
            "methods": ["get"],
            "paths": {
                "/me/events": "least=DelegatedWork,Application",
                "/me/events/{id}": "",
                "/users/{id}/events": "least=Application; note=x",
            },
            "alsoRequires": ["User.Read"],
        })

        assert path_set.methods == ['GET']
        assert path_set.also_requires == ['User.Read']
        assert path_set.least_privilege_schemes('/me/events') == ['DelegatedWork', 'Application']
        assert path_set.least_privilege_schemes('/me/events/{id}') == []
        assert path_set.least_privilege_schemes('/users/{id}/events') == ['Application']
        assert path_set.least_privilege_schemes('/unknown') == []

    @staticmethod
    def test_annotation_drops_repeated_schemes():
        path_set = PathSet(paths={"/items": "least=Application,Application, least=DelegatedWork"})
        assert path_set.least_privilege_schemes('/items') == ['Application', 'DelegatedWork']


class TestSchemeOrder:
    """Test the fixed scheme order"""

    @staticmethod
    def test_sort_order():
        schemes = ['Custom', 'ResourceSpecificConsent', 'Application', 'DelegatedPersonal', 'DelegatedWork', 'Another']
        assert sorted(schemes, key=scheme_sort_key) == [
            'DelegatedWork', 'DelegatedPersonal', 'Application', 'ResourceSpecificConsent', 'Another', 'Custom'
        ]
        assert SchemeType('Application') == SchemeType.APPLICATION


class TestRecords:
    """Test claims and error records"""

    @staticmethod
    def test_claim_is_immutable():
        claim = AcceptableClaim(permission='Files.Read', also_requires=['User.Read'], least=True)

        assert claim.also_requires == ('User.Read',)
        assert claim.to_dict() == {'permission': 'Files.Read', 'coRequired': ['User.Read'], 'least': True}
        with pytest.raises(ValidationError):
            claim.least = False

    @staticmethod
    def test_claim_requires_permission():
        with pytest.raises(ValidationError):
            AcceptableClaim(permission='')

    @staticmethod
    def test_errors_deduplicate_by_content():
        first = PermissionsError(path='/items', error_code=PermissionsErrorCode.DUPLICATE_LEAST_PRIVILEGE_SCOPES,
                                 message='m')
        same = PermissionsError(path='/items', error_code='DuplicateLeastPrivilegeScopes', message='m')
        other = PermissionsError(path='/items', error_code=PermissionsErrorCode.INVALID_LEAST_PRIVILEGE_SCHEME,
                                 message='m')

        assert len({first, same, other}) == 2
        assert first.to_dict() == {'path': '/items', 'errorCode': 'DuplicateLeastPrivilegeScopes', 'message': 'm'}


class TestDocument:
    """Test catalog loading and serialization"""

    CATALOG = {
        "$schema": "https://example.com/permissions-schema.json",
        "permissions": {
            "Files.Read": {
                "authorizationType": "oAuth2",
                "schemes": {
                    "DelegatedWork": {
                        "adminDisplayName": "Read files",
                        "requiresAdminConsent": True,
                        "privilegeLevel": 1
                    }
                },
                "pathSets": [
                    {"schemeKeys": ["DelegatedWork"], "methods": ["GET"],
                     "paths": {"/me/drive": "least=DelegatedWork"}}
                ]
            }
        }
    }

    @staticmethod
    def test_validate_document_dict():
        document = validate_document_dict(TestDocument.CATALOG)

        permission = document.permissions['Files.Read']
        assert document.schema_uri == "https://example.com/permissions-schema.json"
        assert permission.authorization_type == 'oAuth2'
        assert permission.schemes['DelegatedWork'].requires_admin_consent is True
        assert permission.path_sets[0].scheme_keys == ['DelegatedWork']

    @staticmethod
    def test_load_and_dump_document():
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'permissions.json'
            path.write_text(json.dumps(TestDocument.CATALOG), encoding='utf-8')

            document = load_document(str(path))

        dumped = dump_document(document)
        assert dumped['$schema'] == "https://example.com/permissions-schema.json"
        path_set = dumped['permissions']['Files.Read']['pathSets'][0]
        assert path_set['schemeKeys'] == ['DelegatedWork']
        assert path_set['paths'] == {"/me/drive": "least=DelegatedWork"}

    @staticmethod
    def test_rejects_malformed_path_sets():
        with pytest.raises(ValidationError):
            validate_document_dict({"permissions": {"Files.Read": {"pathSets": [{"methods": "GET"}]}}})

    @staticmethod
    def test_generate_json_schema():
        with tempfile.TemporaryDirectory() as tmpdir:
            output = generate_json_schema(str(Path(tmpdir) / 'schema' / 'permissions.json'))
            schema = json.loads(output.read_text(encoding='utf-8'))

        assert schema['$schema'] == "http://json-schema.org/draft-07/schema#"
        assert 'permissions' in schema['properties']
