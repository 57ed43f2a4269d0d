"""
Exceptions raised by the catalog and forecast services.
"""


class DamSafetyError(Exception):
    """Base exception for dam safety service errors."""

    pass


class CatalogLoadError(DamSafetyError):
    """The dam catalog source was unreachable or malformed."""

    pass


class ForecastConnectionError(DamSafetyError):
    """The forecast service could not be reached or answered with an error."""

    pass


class MalformedForecastError(ForecastConnectionError):
    """The forecast service answered, but the payload has an unexpected shape."""

    pass


class NoForecastDataError(DamSafetyError):
    """The forecast service answered without any median flow values."""

    pass
