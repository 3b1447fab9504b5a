# Define chaincut specific exceptions


class ChainCutError(Exception):
    pass


class ConfigurationError(ValueError, ChainCutError):
    """
    Raised before any geometry is processed when the configuration of a call
    cannot be honoured: negative or NaN tolerances, a NaN offset distance, an
    empty chain where one is required. Degenerate geometry never raises; it
    is reported as a CutWarning instead.
    """


class DisconnectedChainError(ChainCutError):
    """
    Raised by normalize_chain when the links of a chain cannot be put in an
    order where every link starts within tolerance of where the previous one
    ends.
    """
