"""
Experiments registry

Experiments gives access to every experiment of the current manifest
snapshot. The snapshot comes from a manifest source (normally a
FileWatcher) that swaps it wholesale when the file on disk changes; each
call reads the snapshot once and works against it until it returns.

Experiments are compiled on first use and cached per snapshot, so a
single malformed entry only fails the calls for that experiment.
"""

import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union
from uuid import UUID

from .errors import ExperimentError, UnknownExperimentError, UnknownExperimentTypeError
from .experiment import SimpleExperiment
from .filewatcher import DEFAULT_POLL_INTERVAL, FileWatcher
from .manifest import Document, manifest_format, parse_manifest
from .models import ExperimentConfig

logger = logging.getLogger(__name__)

SIMPLE_EXPERIMENT_TYPES = frozenset([
    "single_variant",
    "multi_variant",
    "feature_rollout",
    "range_variant",
])

DEFAULT_EVENT_TYPE = "EXPOSE"


@dataclass(frozen=True)
class ExperimentEvent:
    """
    Payload logged by Experiments.expose()

    Only `variant_name` and `is_override` are required from the caller;
    `experiment` is filled in from the manifest. Loggers are expected to
    generate `id` and `client_timestamp` when they are not provided.
    """
    variant_name: str = ""
    is_override: bool = False
    experiment: Optional[ExperimentConfig] = None
    id: Optional[UUID] = None
    correlation_id: Optional[UUID] = None
    device_id: Optional[UUID] = None
    user_id: str = ""
    logged_in: Optional[bool] = None
    cookie_created_at: Optional[datetime] = None
    oauth_client_id: str = ""
    client_timestamp: Optional[datetime] = None
    app_name: str = ""
    session_id: str = ""
    event_type: str = ""


class EventLogger(Protocol):
    def log(self, event: ExperimentEvent, context: Any = None) -> None:
        ...


class ManifestSource(Protocol):
    def get(self) -> Document:
        ...


class Experiments:
    """
    Access to the experiments of a live manifest

    Args:
        source: Anything with a get() returning the current Document
        event_logger: Receives exposure events from expose()
        clock: Time source handed to every compiled experiment
    """

    def __init__(
        self,
        source: ManifestSource,
        event_logger: Optional[EventLogger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.event_logger = event_logger
        self._clock = clock
        self._compiled: Tuple[Optional[Document], Dict[str, SimpleExperiment]] = (None, {})

    @classmethod
    def from_path(
        cls,
        path: Union[str, Path],
        event_logger: Optional[EventLogger] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
    ) -> "Experiments":
        """
        Build a registry backed by a FileWatcher on path

        timeout bounds the wait for the manifest to show up; without one
        this blocks until the file exists.
        """
        fmt = manifest_format(path)
        watcher = FileWatcher(
            path,
            parser=lambda f: parse_manifest(f, fmt),
            poll_interval=poll_interval,
            timeout=timeout,
        )
        return cls(watcher, event_logger=event_logger)

    def close(self) -> None:
        stop = getattr(self.source, "stop", None)
        if stop is not None:
            stop()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def experiment_names(self) -> List[str]:
        return sorted(self.source.get())

    def get_config(self, name: str) -> ExperimentConfig:
        """
        Raises:
            UnknownExperimentError: If name is not in the current manifest
        """
        config = self.source.get().get(name)
        if config is None:
            raise UnknownExperimentError(name)
        return config

    def variant(self, name: str, args: Mapping[str, Any], bucketing_event_override: bool = False) -> str:
        """
        Determine the variant of experiment `name`, if any

        Returns the variant name, or "" when the experiment does not apply.
        MissingBucketKeyError is the one error callers usually want to treat
        as expected, e.g. for logged-out traffic.

        bucketing_event_override has no effect yet since no bucketing events
        are emitted from here.

        Raises:
            UnknownExperimentError: If name is not in the current manifest
            UnknownExperimentTypeError: If the experiment type is not supported
            MissingBucketKeyError: If the bucketing key is missing from args
            BucketValueTypeError: If the bucketing value is not a string
            VariantValidationError, TargetingError: If the entry is misconfigured
        """
        return self._experiment(name).variant(args)

    def validate(self, name: str) -> bool:
        """Compile experiment `name`, raising its configuration error if any"""
        self._experiment(name)
        return True

    def validate_all(self) -> Dict[str, ExperimentError]:
        """Compile every experiment and return the errors by experiment name"""
        errors = {}
        for name in self.experiment_names():
            try:
                self._experiment(name)
            except ExperimentError as e:
                errors[name] = e
        return errors

    def expose(self, experiment_name: str, event: ExperimentEvent, context: Any = None) -> None:
        """
        Log that a user has been exposed to an experimental treatment

        context is handed to the event logger untouched, e.g. the request
        the exposure happened in.

        Raises:
            UnknownExperimentError: If the experiment is not in the current manifest
            ExperimentError: If no event logger is configured
        """
        config = self.get_config(experiment_name)
        if self.event_logger is None:
            raise ExperimentError("no event logger configured to expose experiments")
        event = replace(
            event,
            experiment=config,
            event_type=event.event_type or DEFAULT_EVENT_TYPE,
        )
        self.event_logger.log(event, context)

    def _experiment(self, name: str) -> SimpleExperiment:
        document = self.source.get()
        cached_document, compiled = self._compiled
        if cached_document is not document:
            compiled = {}
            self._compiled = (document, compiled)

        experiment = compiled.get(name)
        if experiment is not None:
            return experiment

        config = document.get(name)
        if config is None:
            raise UnknownExperimentError(name)
        if config.type not in SIMPLE_EXPERIMENT_TYPES:
            raise UnknownExperimentTypeError(config.type)

        experiment = SimpleExperiment(config, clock=self._clock)
        compiled[name] = experiment
        logger.debug(f"Compiled experiment {name}: {experiment!r}")
        return experiment
