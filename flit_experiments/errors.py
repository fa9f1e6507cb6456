"""
Error types raised by the experiments engine

Every error derives from ExperimentError so callers can catch the whole
family at once, while the subclasses let them tell apart the expected
conditions (a request without a bucketing key) from configuration
problems (a broken variant set or targeting tree).
"""


class ExperimentError(Exception):
    """Base class for all experiment errors"""
    pass


class MissingBucketKeyError(ExperimentError):
    """
    The bucketing key is missing from the arguments passed to variant()

    This error is usually considered "normal" (for example logged-out
    traffic without a user id). Callers might still want to log it, but
    it does not need to be escalated.
    """

    def __init__(self, experiment_name: str, args_key: str):
        self.experiment_name = experiment_name
        self.args_key = args_key
        super().__init__(
            f"must specify '{args_key}' in call to variant for experiment '{experiment_name}'"
        )


class UnknownExperimentError(ExperimentError):
    """The requested experiment is not present in the current manifest"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"experiment with name '{name}' unknown")


class UnknownExperimentTypeError(ExperimentError):
    """The experiment's type is not one the engine knows how to bucket"""

    def __init__(self, experiment_type: str):
        self.experiment_type = experiment_type
        super().__init__(f"experiment type '{experiment_type}' unknown")


class VariantValidationError(ExperimentError):
    """The variants are not consistent with the chosen variant set"""
    pass


class TargetingError(ExperimentError):
    """Base class for errors raised while building a targeting tree"""
    pass


class TargetingNodeError(TargetingError):
    """
    A targeting node is malformed

    Raised for operator/input mismatches, e.g. ALL without a list or EQ
    without a 'field' key.
    """
    pass


class UnknownTargetingOperatorError(TargetingError):
    """
    The targeting tree uses an operator the engine does not recognize

    Kept apart from TargetingNodeError so callers can decide to tolerate
    operators introduced by a newer manifest producer.
    """

    def __init__(self, operator: str):
        self.operator = operator
        super().__init__(f"unrecognized operator while constructing targeting tree: {operator}")


class BucketValueTypeError(ExperimentError, TypeError):
    """The bucketing argument is present but is not a string"""

    def __init__(self, value):
        self.actual_type = type(value).__name__
        super().__init__(f"expected bucket val to be a string, actual: {self.actual_type}")


class ManifestError(ExperimentError):
    """The experiments manifest could not be read or parsed"""
    pass


class ManifestTimeoutError(ManifestError, TimeoutError):
    """The manifest did not become available before the caller's deadline"""
    pass
