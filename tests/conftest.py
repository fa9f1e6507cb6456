"""Shared fixtures and builders for the experiments tests."""

import time

import pytest

from flit_experiments import ExperimentConfig

DAY = 24 * 60 * 60


def make_config(experiment_type, *variants, **experiment_fields):
    """Enabled experiment that started 30 days ago and stops in 30 days."""
    now = time.time()
    return ExperimentConfig.model_validate({
        "id": 1,
        "name": "test_experiment",
        "owner": "test",
        "type": experiment_type,
        "version": "1",
        "start_ts": now - 30 * DAY,
        "stop_ts": now + 30 * DAY,
        "enabled": True,
        "experiment": {
            "experiment_version": 1,
            "variants": list(variants),
            **experiment_fields,
        },
    })


def user_ids(count=100):
    return [f"t2_{i:02d}" for i in range(count)]


@pytest.fixture
def simple_config():
    return make_config(
        "single_variant",
        {"name": "variant_1", "size": 0.1},
        {"name": "variant_2", "size": 0.1},
        bucket_seed="some new seed",
    )


@pytest.fixture
def input_set():
    return {
        "bool_field": True,
        "str_field": "string_value",
        "num_field": 5,
        "explicit_nil_field": None,
    }


@pytest.fixture
def manifest_entry():
    """One experiment entry the way it appears in a JSON manifest."""
    now = time.time()
    return {
        "id": 7,
        "name": "free_shipping_threshold_test",
        "owner": "growth",
        "enabled": True,
        "version": "3",
        "type": "single_variant",
        "start_ts": now - DAY,
        "stop_ts": now + DAY,
        "experiment": {
            "experiment_version": 3,
            "shuffle_version": 0,
            "bucket_val": "user_id",
            "variants": [
                {"name": "control", "size": 0.5},
                {"name": "treatment", "size": 0.5},
            ],
        },
    }
