"""
Manifest parsing

The manifest is a single document mapping experiment names to
experiment entries, written to disk by the experiment config fetcher.
It is usually JSON; YAML manifests (handy for local development and
fixtures) are read with PyYAML.

Parsing is forgiving per entry: an entry that doesn't validate is logged
and skipped so one broken experiment can't take down the others. A
document that isn't a mapping at all is rejected.
"""

import json
import logging
from pathlib import Path
from typing import IO, Any, Dict, Mapping, Union

import yaml
from pydantic import ValidationError

from .errors import ManifestError
from .models import ExperimentConfig

logger = logging.getLogger(__name__)

Document = Dict[str, ExperimentConfig]

YAML_SUFFIXES = (".yaml", ".yml")


def build_document(raw: Any) -> Document:
    """
    Validate a decoded manifest into a Document

    Keys starting with '$' are system entries (e.g. $override_groups) and
    are not experiments.
    """
    if not isinstance(raw, Mapping):
        raise ManifestError(
            f"manifest must contain a mapping of experiments, got {type(raw).__name__}"
        )

    document: Document = {}
    for name, entry in raw.items():
        if not isinstance(name, str) or name.startswith("$"):
            continue
        try:
            document[name] = ExperimentConfig.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"Skipping invalid experiment '{name}': {e}")
    return document


def parse_manifest(source: Union[str, bytes, IO], fmt: str = "json") -> Document:
    """
    Parse manifest text or a readable stream

    Args:
        source: Manifest content or an open file
        fmt: "json" or "yaml"

    Raises:
        ManifestError: If the content can't be decoded
    """
    if hasattr(source, "read"):
        source = source.read()

    try:
        if fmt == "yaml":
            raw = yaml.safe_load(source)
        elif fmt == "json":
            raw = json.loads(source)
        else:
            raise ManifestError(f"unsupported manifest format: {fmt}")
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in manifest: {e}") from e
    except ValueError as e:
        raise ManifestError(f"Invalid JSON in manifest: {e}") from e

    return build_document(raw)


def manifest_format(path: Union[str, Path]) -> str:
    return "yaml" if Path(path).suffix.lower() in YAML_SUFFIXES else "json"


def load_manifest(path: Union[str, Path]) -> Document:
    """Read and parse the manifest at path"""
    path = Path(path)
    try:
        with open(path, "rb") as f:
            return parse_manifest(f, manifest_format(path))
    except OSError as e:
        raise ManifestError(f"Could not read manifest '{path}': {e}") from e
