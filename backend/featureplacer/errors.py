from typing import Any, Optional


class FeaturePlacerError(Exception):
    """Base class for every error raised by the placement kernel."""


class ConfigurationError(FeaturePlacerError):
    """Conflicting or invalid query parameters or mapping configuration."""


class TransportError(FeaturePlacerError):
    """Raised when the feature service cannot be reached or reports an error."""

    def __init__(self, message: str, code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.code = code
        self.retryable = retryable


class PayloadError(FeaturePlacerError):
    """A response payload that cannot be trusted as a whole."""

    def __init__(self, message: str, feature_index: Optional[int] = None):
        if feature_index is not None:
            message = f"feature {feature_index}: {message}"
        super().__init__(message)
        self.feature_index = feature_index


class MalformedPayload(PayloadError):
    """The payload is not valid JSON."""


class SchemaMismatch(PayloadError):
    """Expected collection, geometry or attribute keys are absent."""


class InvalidGeometry(PayloadError):
    """A geometry without two numeric coordinate components."""


class MappingError(FeaturePlacerError):
    """A single record could not be turned into a placement directive."""

    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field


class MissingAttribute(MappingError):
    def __init__(self, field: str):
        super().__init__(f"Required attribute '{field}' is missing", field)


class InvalidNumericAttribute(MappingError):
    def __init__(self, field: str, value: Any):
        super().__init__(f"Attribute '{field}' is not a positive number: {value!r}", field)
        self.value = value
