"""
Variant sets

A variant set holds the variants of one experiment together with their
distribution, and maps a bucket (an integer in [0, num_buckets)) to the
name of a variant. An empty string means the bucket is not assigned to
any variant.

Bucket boundaries are computed with int() truncation so that existing
assignments stay stable across implementations.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

from .errors import UnknownExperimentTypeError, VariantValidationError
from .models import Variant


def _scaled(fraction: float, buckets: int) -> int:
    return int(fraction * buckets)


@dataclass(frozen=True)
class SingleVariantSet:
    """
    Variant set for one treatment and one control

    Allows adjusting the variant sizes without changing treatments where
    possible: the first variant grows up from bucket 0, the second grows
    down from the last bucket. When that is not possible (going from a
    60/40 to a 40/60 split) only the buckets between the 40th and 60th
    percentile change treatment.
    """
    variants: Tuple[Variant, ...]
    buckets: int

    def __post_init__(self):
        if not self.variants:
            raise VariantValidationError("no variants provided")
        if len(self.variants) != 2:
            raise VariantValidationError(
                "Single Variant experiments expects only one variant and one control"
            )
        total_size = self.variants[0].size + self.variants[1].size
        if total_size < 0.0 or total_size > 1.0:
            raise VariantValidationError("sum of all variants must be between 0 and 1")

    def choose_variant(self, bucket: int) -> str:
        first, second = self.variants
        if bucket < _scaled(first.size, self.buckets):
            return first.name
        if bucket >= self.buckets - _scaled(second.size, self.buckets):
            return second.name
        return ""


@dataclass(frozen=True)
class MultiVariantSet:
    """
    Variant set for three or more treatments

    Variants are laid out back to back in declaration order, so changing
    a size shifts every following variant. Resizing requires rebucketing.
    """
    variants: Tuple[Variant, ...]
    buckets: int

    def __post_init__(self):
        if not self.variants:
            raise VariantValidationError("no variants provided")
        if len(self.variants) < 3:
            raise VariantValidationError("Multi Variant experiments expects three or more variants")
        total_size = sum(variant.size * self.buckets for variant in self.variants)
        if total_size > self.buckets:
            raise VariantValidationError("sum of all variants is greater than 100%")

    def choose_variant(self, bucket: int) -> str:
        current_offset = 0
        for variant in self.variants:
            current_offset += _scaled(variant.size, self.buckets)
            if bucket < current_offset:
                return variant.name
        return ""


@dataclass(frozen=True)
class RolloutVariantSet:
    """
    Variant set for feature rollouts with a single variant

    Growing the rollout from 45% to 55% only moves the new 10% of users
    into the treatment; the initial 45% keep it. Shrinking works the same
    way in reverse.
    """
    variants: Tuple[Variant, ...]
    buckets: int

    def __post_init__(self):
        if not self.variants:
            raise VariantValidationError("no variants provided")
        if len(self.variants) != 1:
            raise VariantValidationError("Rollout Variant experiments only supports one variant")
        size = self.variants[0].size
        if size < 0.0 or size > 1.0:
            raise VariantValidationError("variant size must be between 0 and 1")

    @property
    def variant(self) -> Variant:
        return self.variants[0]

    def choose_variant(self, bucket: int) -> str:
        if bucket < _scaled(self.variant.size, self.buckets):
            return self.variant.name
        return ""


@dataclass(frozen=True)
class RangeVariantSet:
    """
    Variant set with explicit bucket ranges

    Every variant names the [range_start, range_end) fraction of buckets
    it owns. Ranges don't have to be contiguous; when they overlap the
    first declared variant wins.
    """
    variants: Tuple[Variant, ...]
    buckets: int

    def __post_init__(self):
        if not self.variants:
            raise VariantValidationError("no variants provided")
        total_size = sum(
            _scaled(variant.range_end - variant.range_start, self.buckets)
            for variant in self.variants
        )
        if total_size > self.buckets:
            raise VariantValidationError("sum of all variants is greater than 100%")

    def choose_variant(self, bucket: int) -> str:
        for variant in self.variants:
            lower_bucket = _scaled(variant.range_start, self.buckets)
            upper_bucket = _scaled(variant.range_end, self.buckets)
            if lower_bucket <= bucket < upper_bucket:
                return variant.name
        return ""


VariantSet = Union[SingleVariantSet, MultiVariantSet, RolloutVariantSet, RangeVariantSet]

VARIANT_SETS = {
    "single_variant": SingleVariantSet,
    "multi_variant": MultiVariantSet,
    "feature_rollout": RolloutVariantSet,
    "range_variant": RangeVariantSet,
}


def from_experiment_type(experiment_type: str, variants: Sequence[Variant], buckets: int) -> VariantSet:
    """
    Build the variant set matching an experiment type

    Raises:
        UnknownExperimentTypeError: If the type is not one of VARIANT_SETS
        VariantValidationError: If the variants don't fit the variant set
    """
    variant_set_class = VARIANT_SETS.get(experiment_type)
    if variant_set_class is None:
        raise UnknownExperimentTypeError(experiment_type)
    return variant_set_class(tuple(variants or ()), buckets)
