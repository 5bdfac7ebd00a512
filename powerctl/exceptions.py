# -*- coding: utf-8 -*-
"""Exceptions used by the powerctl daemon."""


class PowerCtlError(Exception):
    """Base class for all powerctl errors."""


class ConfigurationError(PowerCtlError):
    """Bad or incomplete configuration. Prevents the daemon from starting."""


class SourceTransientError(PowerCtlError):
    """The source could not determine its state this time.
    Handled by the source itself, never seen by the aggregator.
    """


class SinkError(PowerCtlError):
    """Base class for actuation failures."""


class SinkRetryableError(SinkError):
    """Transient failure (timeout, connection refused...) - try again."""


class SinkFatalError(SinkError):
    """Permanent failure (bad credentials, device refused the command).
    Retrying in the same dispatch cycle won't help.
    """
