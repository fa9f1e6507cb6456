"""
Manifest models

These pydantic models mirror one entry of the experiments manifest. They
only describe and validate the document shape; turning an entry into
something that can bucket users is the job of SimpleExperiment.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Variant(BaseModel):
    """
    A named slice of the bucket space

    Either `size` is set (a fraction of all buckets) or the pair
    `range_start`/`range_end` (fractions) for range based experiments.
    NaN and infinity are rejected, they have no place in the bucket space.
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    name: str
    size: float = 0.0
    range_start: float = 0.0
    range_end: float = 0.0


class Experiment(BaseModel):
    """The bucketing part of an experiment entry"""
    model_config = ConfigDict(frozen=True)

    experiment_version: int = 0
    # Changing it (without an explicit bucket_seed) rebuckets everyone
    shuffle_version: int = 0
    bucket_val: str = ""
    variants: List[Variant] = []
    bucket_seed: str = ""
    # Raw predicate documents, compiled by flit_experiments.targeting
    targeting: Optional[Any] = None
    overrides: List[Dict[str, Any]] = []

    @field_validator("bucket_val", "bucket_seed", mode="before")
    @classmethod
    def _null_string(cls, value):
        return "" if value is None else value

    @field_validator("variants", "overrides", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value


class ExperimentConfig(BaseModel):
    """
    One experiment as it appears in the manifest

    Args:
        id: Experiment identifier, unique per experiment
        name: Human readable name, also used for the default bucket seed
        owner: Group or individual owning the experiment
        enabled: None means enabled; False disables every variant call
        version: Identifier of this version of the experiment
        type: Experiment type, e.g. "single_variant" or "feature_rollout"
        start_ts: Seconds since the epoch when the experiment starts
        stop_ts: Seconds since the epoch when the experiment stops
        experiment: The bucketing definition
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: int = 0
    name: str = ""
    owner: str = ""
    enabled: Optional[bool] = None
    version: str = ""
    type: str = ""
    start_ts: float = 0.0
    stop_ts: float = 0.0
    experiment: Experiment = Experiment()

    @field_validator("name", "owner", "version", "type", mode="before")
    @classmethod
    def _null_string(cls, value):
        return "" if value is None else value

    @field_validator("start_ts", "stop_ts", mode="before")
    @classmethod
    def _null_timestamp(cls, value):
        return 0.0 if value is None else value

    @field_validator("experiment", mode="before")
    @classmethod
    def _null_experiment(cls, value):
        return {} if value is None else value

    @property
    def is_enabled(self) -> bool:
        return True if self.enabled is None else self.enabled

    @property
    def start_time(self) -> datetime:
        return datetime.fromtimestamp(self.start_ts, tz=timezone.utc)

    @property
    def stop_time(self) -> datetime:
        return datetime.fromtimestamp(self.stop_ts, tz=timezone.utc)
