"""
SimpleExperiment - deterministic bucketing for a single experiment

A SimpleExperiment is compiled from one ExperimentConfig and answers the
question "which variant, if any, does this request get?". The decision
order is:

1. disabled or outside the [start, stop) window -> no variant
2. bucketing key missing -> MissingBucketKeyError
3. first matching override -> that variant, no bucketing
4. targeting miss -> no variant
5. SHA1(bucket_seed + bucket key) mod 1000 -> variant set

Instances are immutable and safe to share between threads.
"""

import hashlib
import logging
import time
from typing import Any, Callable, Mapping, Optional, Tuple

from .errors import BucketValueTypeError, MissingBucketKeyError
from .models import ExperimentConfig
from .targeting import Targeting, lower_keys, parse_targeting
from .variants import VariantSet, from_experiment_type

logger = logging.getLogger(__name__)

# 1000 buckets gives a variant granularity of 0.1%
NUM_BUCKETS = 1000
DEFAULT_BUCKET_VAL = "user_id"
TARGET_ALL_OVERRIDE = {"OVERRIDE": True}


def calculate_bucket(bucket_seed: str, bucket_key: str, num_buckets: int = NUM_BUCKETS) -> int:
    """
    Map a bucketing key onto [0, num_buckets)

    The 20 byte SHA1 digest of seed + key is read as a big-endian
    unsigned integer. This has to stay byte exact, otherwise every
    existing assignment changes.
    """
    digest = hashlib.sha1((bucket_seed + bucket_key).encode("utf-8")).digest()
    return int.from_bytes(digest, "big") % num_buckets


def default_bucket_seed(config: ExperimentConfig) -> str:
    return f"{config.id}.{config.name}.{config.experiment.shuffle_version}"


class SimpleExperiment:
    """
    A basic experiment choosing from a set of variants

    Args:
        config: The manifest entry to compile
        clock: Returns the current time in seconds since the epoch

    Raises:
        UnknownExperimentTypeError: If config.type has no variant set
        VariantValidationError: If the variants don't fit the variant set
        TargetingNodeError: If the targeting or an override is malformed
        UnknownTargetingOperatorError: If a predicate uses an unknown operator
    """

    def __init__(self, config: ExperimentConfig, clock: Callable[[], float] = time.time):
        definition = config.experiment

        self.id = config.id
        self.name = config.name
        self.bucket_val = (definition.bucket_val or DEFAULT_BUCKET_VAL).lower()
        self.bucket_seed = definition.bucket_seed or default_bucket_seed(config)
        self.num_buckets = NUM_BUCKETS
        self.enabled = config.is_enabled
        self.start_ts = config.start_ts
        self.stop_ts = config.stop_ts
        self._clock = clock

        self.variant_set: VariantSet = from_experiment_type(
            config.type, definition.variants, self.num_buckets
        )
        # Only an absent or empty document targets everyone, anything else must parse
        targeting = definition.targeting
        if targeting is None or targeting == {}:
            targeting = TARGET_ALL_OVERRIDE
        self.targeting: Targeting = parse_targeting(targeting)

        # Entries keep document order, and so do the variant keys inside one entry
        overrides = []
        for entry in definition.overrides:
            overrides.append(tuple(
                (variant, parse_targeting(predicate)) for variant, predicate in entry.items()
            ))
        self.overrides: Tuple[Tuple[Tuple[str, Targeting], ...], ...] = tuple(overrides)

    def __repr__(self):
        return f"<SimpleExperiment {self.name} seed={self.bucket_seed!r} enabled={self.enabled}>"

    def is_enabled(self, now: Optional[float] = None) -> bool:
        """True if enabled and now falls in [start_ts, stop_ts)"""
        if now is None:
            now = self._clock()
        return self.enabled and self.start_ts <= now < self.stop_ts

    def calculate_bucket(self, bucket_key: str) -> int:
        return calculate_bucket(self.bucket_seed, bucket_key, self.num_buckets)

    def variant(self, args: Mapping[str, Any]) -> str:
        """
        Determine the variant, if any, for the given arguments

        All values needed for bucketing, targeting and overrides are passed
        in args. Keys are matched case-insensitively.

        Returns:
            The variant name, or "" if no variant applies

        Raises:
            MissingBucketKeyError: If the bucketing key is missing, None or ""
            BucketValueTypeError: If the bucketing value is not a string
        """
        if not self.is_enabled():
            return ""
        args = lower_keys(args)
        value = args.get(self.bucket_val)
        if value is None or (isinstance(value, str) and value == ""):
            raise MissingBucketKeyError(self.name, self.bucket_val)

        for entry in self.overrides:
            for variant, targeting in entry:
                if targeting.root.evaluate(args):
                    logger.debug(f"Override matched for experiment {self.name}: {variant}")
                    return variant

        if not self.targeting.root.evaluate(args):
            return ""
        if not isinstance(value, str):
            raise BucketValueTypeError(value)

        bucket = self.calculate_bucket(value)
        return self.variant_set.choose_variant(bucket)

    def unique_id(self, bucket_vals: Mapping[str, str]) -> str:
        """
        Identifier of the (experiment, bucketing key) pair

        Returns "" if bucket_vals lacks the experiment's bucketing key.
        """
        if self.bucket_val not in bucket_vals:
            return ""
        return ":".join([self.name, self.bucket_val, bucket_vals[self.bucket_val]])
