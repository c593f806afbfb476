#!/usr/bin/env python3
"""
Catalog Loader - Loads permission catalogs from files or URLs

Catalogs are JSON (or YAML) documents validated through the
PermissionsDocument model. Remote catalogs are fetched over HTTP.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import requests
import yaml
from pydantic import ValidationError

from scopelint.config import ScopeLintConfig
from scopelint.permissions_schema import PermissionsDocument

logger = logging.getLogger(__name__)


class CatalogLoadError(Exception):
    """Raised when a catalog cannot be read, fetched or validated"""


class CatalogLoader:
    """Loads and validates permission catalogs"""

    def __init__(self, config: Optional[ScopeLintConfig] = None):
        self.config = config or ScopeLintConfig()

    def load(self, source: str) -> PermissionsDocument:
        """
        Load a catalog from a local path or an http(s) URL

        Raises:
            CatalogLoadError: If the catalog cannot be loaded or fails validation
        """
        if source.startswith(('http://', 'https://')):
            text = self._fetch(source)
            is_yaml = source.lower().endswith(('.yaml', '.yml'))
        else:
            path = Path(source)
            try:
                text = path.read_text(encoding='utf-8-sig')
            except OSError as e:
                raise CatalogLoadError(f"Could not read catalog {source}: {e}") from e
            is_yaml = path.suffix.lower() in ('.yaml', '.yml')

        document = self.parse(text, is_yaml=is_yaml, source=source)
        logger.info(f"Loaded {len(document.permissions)} permissions from {source}")
        return document

    def parse(self, text: str, is_yaml: bool = False, source: str = '<string>') -> PermissionsDocument:
        """Parse and validate catalog text"""
        try:
            data = yaml.safe_load(text) if is_yaml else json.loads(text)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise CatalogLoadError(f"Could not parse catalog {source}: {e}") from e

        if not isinstance(data, dict):
            raise CatalogLoadError(f"Catalog {source} must be an object")

        try:
            return PermissionsDocument.model_validate(data)
        except ValidationError as e:
            raise CatalogLoadError(f"Invalid catalog {source}: {e}") from e

    def _fetch(self, url: str) -> str:
        logger.debug(f"Fetching catalog from {url}")
        try:
            response = requests.get(url, timeout=self.config.request_timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as e:
            raise CatalogLoadError(f"Could not fetch catalog {url}: {e}") from e
        return response.text
