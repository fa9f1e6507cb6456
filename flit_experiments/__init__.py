"""
Flit Experiments

This package decides which variant of an experiment a request gets. It
reads the experiments manifest (kept up to date on disk by the experiment
config fetcher), buckets users deterministically with a seeded SHA1 hash,
applies targeting rules and variant overrides, and logs exposures.

Usage:
    from flit_experiments import Experiments, MissingBucketKeyError

    experiments = Experiments.from_path("/var/local/experiments.json", timeout=30)
    try:
        variant = experiments.variant("free_shipping_threshold_test", {"user_id": "t2_1"})
    except MissingBucketKeyError:
        variant = ""

Or, with the manifest location taken from FLIT_EXPERIMENTS_MANIFEST_PATH:
    from flit_experiments import variant

    variant("free_shipping_threshold_test", {"user_id": "t2_1"})
"""

import logging
import threading
from typing import Any, Mapping, Optional

__version__ = "2.0.0"

__author__ = "Flit Experimentation Team"
__email__ = "kevwaithakam@gmail.com"
__description__ = "Experiment bucketing and targeting engine for Flit's A/B testing platform"

from .config import ExperimentsSettings, get_settings
from .errors import (
    BucketValueTypeError,
    ExperimentError,
    ManifestError,
    ManifestTimeoutError,
    MissingBucketKeyError,
    TargetingError,
    TargetingNodeError,
    UnknownExperimentError,
    UnknownExperimentTypeError,
    UnknownTargetingOperatorError,
    VariantValidationError,
)
from .experiment import NUM_BUCKETS, SimpleExperiment, calculate_bucket
from .filewatcher import FileWatcher, InMemoryManifest
from .manifest import load_manifest, parse_manifest
from .models import Experiment, ExperimentConfig, Variant
from .registry import EventLogger, ExperimentEvent, Experiments
from .targeting import Targeting, parse_targeting
from .variants import (
    MultiVariantSet,
    RangeVariantSet,
    RolloutVariantSet,
    SingleVariantSet,
    from_experiment_type,
)

__all__ = [
    "BucketValueTypeError",
    "EventLogger",
    "Experiment",
    "ExperimentConfig",
    "ExperimentError",
    "ExperimentEvent",
    "Experiments",
    "ExperimentsSettings",
    "FileWatcher",
    "InMemoryManifest",
    "ManifestError",
    "ManifestTimeoutError",
    "MissingBucketKeyError",
    "MultiVariantSet",
    "NUM_BUCKETS",
    "RangeVariantSet",
    "RolloutVariantSet",
    "SimpleExperiment",
    "SingleVariantSet",
    "Targeting",
    "TargetingError",
    "TargetingNodeError",
    "UnknownExperimentError",
    "UnknownExperimentTypeError",
    "UnknownTargetingOperatorError",
    "Variant",
    "VariantValidationError",
    "calculate_bucket",
    "expose",
    "from_experiment_type",
    "get_experiments",
    "get_settings",
    "load_manifest",
    "parse_manifest",
    "parse_targeting",
    "set_experiments",
    "variant",
    "__version__",
]

# Library logging stays silent unless the application configures a handler
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__.append("logger")

# Default registry for the function based API, created on first use
_default_experiments: Optional[Experiments] = None
_default_lock = threading.Lock()


def get_experiments() -> Experiments:
    """
    Get the package level registry

    The manifest path, poll interval and startup timeout come from
    ExperimentsSettings (FLIT_EXPERIMENTS_* environment variables).
    """
    global _default_experiments
    with _default_lock:
        if _default_experiments is None:
            settings = get_settings()
            logger.info(f"Creating default experiments registry for {settings.manifest_path}")
            _default_experiments = Experiments.from_path(
                settings.manifest_path,
                poll_interval=settings.poll_interval,
                timeout=settings.load_timeout,
            )
        return _default_experiments


def variant(name: str, args: Mapping[str, Any], bucketing_event_override: bool = False) -> str:
    """Determine the variant of experiment `name` with the default registry"""
    return get_experiments().variant(name, args, bucketing_event_override)


def expose(experiment_name: str, event: ExperimentEvent, context: Any = None) -> None:
    """Log an exposure with the default registry"""
    get_experiments().expose(experiment_name, event, context)


def set_experiments(experiments: Optional[Experiments]) -> None:
    """
    Replace the package level registry

    Use it to install a registry with an event logger, or pass None to
    have the next call build one from the settings again.
    """
    global _default_experiments
    with _default_lock:
        _default_experiments = experiments
