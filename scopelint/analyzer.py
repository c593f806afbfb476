"""
Permissions Analyzer

Orchestrates catalog loading, resource building and reporting.
"""

import json
import logging
import sys
from typing import Dict, List, Optional

from scopelint.catalog_loader import CatalogLoader, CatalogLoadError
from scopelint.config import ScopeLintConfig, load_config
from scopelint.permissions_schema import PermissionsDocument
from scopelint.protected_resource import ProtectedResource
from scopelint.report_utils import build_error_summary, build_permissions_table, build_resources_report
from scopelint.resource_builder import BuildResult, ResourceBuilder

logger = logging.getLogger(__name__)

USAGE = """Usage:
  scopelint validate <catalog>
  scopelint least <catalog> <url> [--method METHOD] [--scheme SCHEME]
  scopelint table <catalog> <url> <method>
  scopelint dump <catalog>

Options:
  --config <file.yaml>  Load configuration from YAML
  --debug               Enable debug logging
"""


class PermissionsAnalyzer:
    """
    Runs least privilege validation over a permission catalog

    Loads the catalog, builds every ProtectedResource once, and answers
    report queries from the built state.
    """

    def __init__(self, config: Optional[ScopeLintConfig] = None):
        self.config = config or ScopeLintConfig()
        self.loader = CatalogLoader(self.config)
        self.builder = ResourceBuilder(self.config.least_privilege_marker)
        self.result: Optional[BuildResult] = None

    def analyze_source(self, source: str) -> BuildResult:
        """Load a catalog from a file or URL and build it"""
        return self.analyze(self.loader.load(source))

    def analyze(self, document: PermissionsDocument) -> BuildResult:
        self.result = self.builder.build(document)
        return self.result

    def summary(self) -> Dict:
        result = self._require_result()
        return {
            'resources': len(result.resources),
            'errors': build_error_summary(result.errors),
        }

    def resource(self, url: str) -> ProtectedResource:
        """
        Raises:
            KeyError: If no resource matches url
        """
        resource = self._require_result().find_resource(url)
        if resource is None:
            raise KeyError(f"No resource found for {url}")
        return resource

    def least_privilege_report(self, url: str, method: Optional[str] = None,
                               scheme: Optional[str] = None) -> str:
        if method is not None:
            method = method.upper()
        return self.resource(url).fetch_least_privilege(method, scheme)

    def permissions_table(self, url: str, method: str) -> str:
        summary = self.resource(url).permissions_table_summary(method.upper())
        return build_permissions_table(summary)

    def resources_report(self) -> Dict:
        return build_resources_report(self._require_result())

    def _require_result(self) -> BuildResult:
        if self.result is None:
            raise RuntimeError("No catalog analyzed yet; call analyze() first")
        return self.result


def _pop_option(args: List[str], name: str) -> Optional[str]:
    """Remove '--name value' from args and return value"""
    if name not in args:
        return None
    index = args.index(name)
    if index + 1 >= len(args):
        raise ValueError(f"Missing value for {name}")
    value = args[index + 1]
    del args[index:index + 2]
    return value


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command line entry point

    Exit codes: 0 success, 1 validation errors (when fail_on_errors is set),
    2 usage, configuration or catalog loading problems.
    """
    args = list(sys.argv[1:] if argv is None else argv)

    debug = '--debug' in args
    if debug:
        args.remove('--debug')

    try:
        config = load_config(_pop_option(args, '--config'))
        method = _pop_option(args, '--method')
        scheme = _pop_option(args, '--scheme')
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, config.log_level, logging.WARNING),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if len(args) < 2 or args[0] not in ('validate', 'least', 'table', 'dump'):
        print(USAGE, file=sys.stderr)
        return 2

    command, source = args[0], args[1]
    analyzer = PermissionsAnalyzer(config)

    try:
        result = analyzer.analyze_source(source)
    except CatalogLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        if command == 'validate':
            for error in result.sorted_errors():
                print(f"{error.path}: [{error.error_code.value}] {error.message}")
            summary = analyzer.summary()
            print(f"\n{summary['resources']} resources, {summary['errors']['total']} errors")
            if result.errors and config.fail_on_errors:
                return 1
        elif command == 'least':
            if len(args) < 3:
                print(USAGE, file=sys.stderr)
                return 2
            print(analyzer.least_privilege_report(args[2], method, scheme), end='')
        elif command == 'table':
            if len(args) < 4:
                print(USAGE, file=sys.stderr)
                return 2
            print(analyzer.permissions_table(args[2], args[3]), end='')
        else:
            print(json.dumps(analyzer.resources_report(), indent=2))
    except KeyError as e:
        print(f"Error: {e.args[0]}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
