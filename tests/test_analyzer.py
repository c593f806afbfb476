#!/usr/bin/env python3
"""
Tests for analyzer.py (orchestration and command line)
"""

import contextlib
import io
import json
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scopelint.analyzer import PermissionsAnalyzer, main
from scopelint.permissions_schema import validate_document_dict


CLEAN_CATALOG = {
    "permissions": {
        "Calendars.Read": {
            "pathSets": [
                {"schemeKeys": ["DelegatedWork", "DelegatedPersonal", "Application"], "methods": ["GET"],
                 "paths": {"/me/events": "least=DelegatedWork,DelegatedPersonal,Application"}}
            ]
        },
        "Calendars.ReadWrite": {
            "pathSets": [
                {"schemeKeys": ["DelegatedWork", "Application"], "methods": ["GET", "POST"],
                 "paths": {"/me/events": "least=DelegatedWork,Application"}}
            ]
        }
    }
}

BROKEN_CATALOG = {
    "permissions": {
        "Mail.Send": {
            "pathSets": [
                {"schemeKeys": ["DelegatedWork"], "methods": ["POST"],
                 "paths": {"/me/sendMail": "least=Application"}}
            ]
        }
    }
}


def run_main(args):
    stdout, stderr = io.StringIO(), io.StringIO()
    with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
        code = main(args)
    return code, stdout.getvalue(), stderr.getvalue()


def write_catalog(tmpdir, catalog):
    path = Path(tmpdir) / 'permissions.json'
    path.write_text(json.dumps(catalog), encoding='utf-8')
    return str(path)


class TestPermissionsAnalyzer:
    """Test the analyzer API"""

    @staticmethod
    def test_reports():
        analyzer = PermissionsAnalyzer()
        analyzer.analyze(validate_document_dict(CLEAN_CATALOG))

        assert analyzer.summary()['resources'] == 1
        assert analyzer.summary()['errors']['total'] == 0
        report = analyzer.least_privilege_report('/me/events/', method='get')
        assert report == (
            "\nGET\n"
            "|DelegatedWork |Calendars.Read|\n\n"
            "|DelegatedPersonal |Calendars.Read|\n\n"
            "|Application |Calendars.Read|\n\n"
            "\n"
        )
        table = analyzer.permissions_table('/me/events', 'post')
        assert "|Delegated (work or school account)|Calendars.ReadWrite|" in table
        assert "|Delegated (personal Microsoft account)|**TODO: Provide applicable permissions.**|" in table

    @staticmethod
    def test_unknown_resource():
        analyzer = PermissionsAnalyzer()
        analyzer.analyze(validate_document_dict(CLEAN_CATALOG))

        with pytest.raises(KeyError):
            analyzer.resource('/me/contacts')

    @staticmethod
    def test_requires_analysis_first():
        with pytest.raises(RuntimeError):
            PermissionsAnalyzer().summary()


class TestMain:
    """Test the command line"""

    @staticmethod
    def test_validate_clean_catalog():
        with tempfile.TemporaryDirectory() as tmpdir:
            code, out, _ = run_main(['validate', write_catalog(tmpdir, CLEAN_CATALOG)])

        assert code == 0
        assert "1 resources, 0 errors" in out

    @staticmethod
    def test_validate_reports_errors():
        with tempfile.TemporaryDirectory() as tmpdir:
            code, out, _ = run_main(['validate', write_catalog(tmpdir, BROKEN_CATALOG)])

        assert code == 1
        assert "/me/sendMail: [InvalidLeastPrivilegeScheme]" in out

    @staticmethod
    def test_validate_with_fail_on_errors_disabled():
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / 'scopelint.yaml'
            config.write_text("fail_on_errors: false\n", encoding='utf-8')
            code, _, _ = run_main(['validate', write_catalog(tmpdir, BROKEN_CATALOG), '--config', str(config)])

        assert code == 0

    @staticmethod
    def test_least_command():
        with tempfile.TemporaryDirectory() as tmpdir:
            code, out, _ = run_main(['least', write_catalog(tmpdir, CLEAN_CATALOG), '/me/events',
                                     '--method', 'POST', '--scheme', 'Application'])

        assert code == 0
        assert out == "\nPOST\n|Application |Calendars.ReadWrite|\n\n\n"

    @staticmethod
    def test_table_and_dump_commands():
        with tempfile.TemporaryDirectory() as tmpdir:
            catalog = write_catalog(tmpdir, CLEAN_CATALOG)
            table_code, table, _ = run_main(['table', catalog, '/me/events', 'GET'])
            dump_code, dump, _ = run_main(['dump', catalog])

        assert table_code == 0
        assert "|Application|Calendars.Read, Calendars.ReadWrite|" in table
        assert dump_code == 0
        assert json.loads(dump)['resources'][0]['url'] == '/me/events'

    @staticmethod
    def test_usage_and_load_errors():
        assert run_main([])[0] == 2
        assert run_main(['explain', 'permissions.json'])[0] == 2
        code, _, err = run_main(['validate', '/nonexistent/permissions.json'])
        assert code == 2
        assert "Could not read catalog" in err

    @staticmethod
    def test_unknown_resource_command():
        with tempfile.TemporaryDirectory() as tmpdir:
            code, _, err = run_main(['least', write_catalog(tmpdir, CLEAN_CATALOG), '/me/contacts'])

        assert code == 2
        assert "No resource found" in err
