#!/usr/bin/env python3
"""
Report Utilities - Report building and formatting functions

Turns validated resources into documentation-ready output: the three-bucket
markdown permissions table, error summaries and the JSON resource report.
None of these perform additional checks.
"""

from typing import Dict, Iterable, List

from scopelint.permissions_schema import PermissionsError, PermissionsErrorCode
from scopelint.protected_resource import PermissionsTableSummary

TABLE_HEADERS = ("Permission type", "Permissions (from least to most privileged)")

TABLE_ROW_LABELS = (
    ('delegated_work', "Delegated (work or school account)"),
    ('delegated_personal', "Delegated (personal Microsoft account)"),
    ('application', "Application"),
)


def build_markdown_table(headers: Iterable[str], rows: Iterable[Iterable[str]]) -> str:
    """
    Build a markdown table

    Args:
        headers: Column headers
        rows: Cell values per row; '|' inside a value is escaped

    Returns:
        Markdown text ending with a newline
    """
    headers = list(headers)
    lines = [
        '|' + '|'.join(headers) + '|',
        '|' + '|'.join(':---' for _ in headers) + '|',
    ]
    for row in rows:
        cells = [str(cell).replace('|', '\\|') for cell in row]
        lines.append('|' + '|'.join(cells) + '|')
    return '\n'.join(lines) + '\n'


def build_permissions_table(summary: PermissionsTableSummary) -> str:
    """
    Render a permissions table for one method

    Example:
        |Permission type|Permissions (from least to most privileged)|
        |:---|:---|
        |Delegated (work or school account)|Files.Read, Files.ReadWrite|
        |Delegated (personal Microsoft account)|Files.Read|
        |Application|Files.Read.All|
    """
    rows = [
        (label, ', '.join(getattr(summary, field)))
        for field, label in TABLE_ROW_LABELS
    ]
    return build_markdown_table(TABLE_HEADERS, rows)


def build_error_summary(errors: Iterable[PermissionsError]) -> Dict:
    """
    Summarize validation errors

    Returns:
        {
            'total': 3,
            'by_code': {'InvalidLeastPrivilegeScheme': 1, 'DuplicateLeastPrivilegeScopes': 2},
            'by_resource': {'/me/drive': 2, '/me/events': 1}
        }
    """
    by_code = {code.value: 0 for code in PermissionsErrorCode}
    by_resource: Dict[str, int] = {}
    total = 0

    for error in errors:
        total += 1
        by_code[error.error_code.value] += 1
        by_resource[error.path] = by_resource.get(error.path, 0) + 1

    return {
        'total': total,
        'by_code': by_code,
        'by_resource': dict(sorted(by_resource.items())),
    }


def build_resources_report(result) -> Dict:
    """
    Build the JSON report for a BuildResult

    Resources are ordered by URL and errors by (path, code, message) so that
    reports diff cleanly between runs.
    """
    errors: List[PermissionsError] = result.sorted_errors()
    return {
        'resources': [
            result.resources[url].to_dict() for url in sorted(result.resources)
        ],
        'errors': [error.to_dict() for error in errors],
        'summary': build_error_summary(errors),
    }
