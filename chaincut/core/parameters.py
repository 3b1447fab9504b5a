import math
from typing import Dict

from .exceptions import ConfigurationError

FLOAT_PARAMETERS = (
    "tolerance",
    "closure_tolerance",
    "containment_tolerance",
    "tessellation_tolerance",
    "offset_tolerance",
    "snap_threshold",
    "max_extension",
)

INT_PARAMETERS = ("max_recursion_depth",)

# Parameters that must be strictly positive, the others may be zero.
POSITIVE_PARAMETERS = (
    "tolerance",
    "tessellation_tolerance",
    "offset_tolerance",
)


class Parameters:
    """
    Parameters is the explicit configuration value handed to every geometry
    call. It wraps a plain settings dictionary so hosts can persist, merge and
    derive settings however they like, while the geometry core reads them
    through typed accessors with defaults. Nothing in here is global: two calls
    with two Parameters objects never influence each other.

    Tolerances are absolute and share the drawing's unit of measure.
    """

    def __init__(self, settings: Dict = None, **kwargs):
        self.settings = settings
        if self.settings is None:
            self.settings = dict()
        self.settings.update(kwargs)

    def __repr__(self):
        return f"Parameters({repr(self.settings)})"

    def derive(self):
        derived_dict = dict(self.settings)
        for attr in FLOAT_PARAMETERS + INT_PARAMETERS:
            derived_dict[attr] = getattr(self, attr)
        return derived_dict

    def validate(self):
        """
        Normalize the value types and reject anything the geometry core cannot
        work with. Raises ConfigurationError.
        """
        settings = self.settings
        for v in FLOAT_PARAMETERS:
            if v in settings:
                try:
                    settings[v] = float(settings[v])
                except (TypeError, ValueError) as e:
                    raise ConfigurationError(f"{v} is not a number: {settings[v]!r}") from e
        for v in INT_PARAMETERS:
            if v in settings:
                try:
                    settings[v] = int(float(settings[v]))
                except (TypeError, ValueError, OverflowError) as e:
                    raise ConfigurationError(f"{v} is not an integer: {settings[v]!r}") from e
        for v in FLOAT_PARAMETERS:
            value = getattr(self, v)
            if not math.isfinite(value):
                raise ConfigurationError(f"{v} must be finite, got {value}")
            if value < 0:
                raise ConfigurationError(f"{v} must not be negative, got {value}")
            if v in POSITIVE_PARAMETERS and value == 0:
                raise ConfigurationError(f"{v} must be greater than zero")
        if self.max_recursion_depth < 1:
            raise ConfigurationError(
                f"max_recursion_depth must be at least 1, got {self.max_recursion_depth}"
            )
        if self.snap_threshold > self.offset_tolerance:
            raise ConfigurationError(
                f"snap_threshold ({self.snap_threshold}) exceeds offset_tolerance ({self.offset_tolerance})"
            )
        if self.offset_tolerance > self.max_extension:
            raise ConfigurationError(
                f"offset_tolerance ({self.offset_tolerance}) exceeds max_extension ({self.max_extension})"
            )
        return self

    @property
    def tolerance(self):
        return self.settings.get("tolerance", 0.05)

    @tolerance.setter
    def tolerance(self, value):
        self.settings["tolerance"] = value

    @property
    def closure_tolerance(self):
        value = self.settings.get("closure_tolerance")
        if value is None:
            return 10.0 * self.tolerance
        return value

    @closure_tolerance.setter
    def closure_tolerance(self, value):
        self.settings["closure_tolerance"] = value

    @property
    def containment_tolerance(self):
        return self.settings.get("containment_tolerance", 0.05)

    @containment_tolerance.setter
    def containment_tolerance(self, value):
        self.settings["containment_tolerance"] = value

    @property
    def tessellation_tolerance(self):
        return self.settings.get("tessellation_tolerance", 0.01)

    @tessellation_tolerance.setter
    def tessellation_tolerance(self, value):
        self.settings["tessellation_tolerance"] = value

    @property
    def offset_tolerance(self):
        return self.settings.get("offset_tolerance", 0.1)

    @offset_tolerance.setter
    def offset_tolerance(self, value):
        self.settings["offset_tolerance"] = value

    @property
    def snap_threshold(self):
        return self.settings.get("snap_threshold", 0.05)

    @snap_threshold.setter
    def snap_threshold(self, value):
        self.settings["snap_threshold"] = value

    @property
    def max_extension(self):
        return self.settings.get("max_extension", 50.0)

    @max_extension.setter
    def max_extension(self, value):
        self.settings["max_extension"] = value

    @property
    def max_recursion_depth(self):
        return self.settings.get("max_recursion_depth", 32)

    @max_recursion_depth.setter
    def max_recursion_depth(self, value):
        self.settings["max_recursion_depth"] = value


def validated(parameters):
    """
    Returns a validated Parameters object for the given argument, which may be
    None (defaults), a Parameters object or a plain settings dictionary. The
    caller's object is never modified.
    """
    if parameters is None:
        return Parameters()
    if isinstance(parameters, Parameters):
        return Parameters(dict(parameters.settings)).validate()
    if isinstance(parameters, dict):
        return Parameters(dict(parameters)).validate()
    raise ConfigurationError(f"Unsupported configuration value: {parameters!r}")
