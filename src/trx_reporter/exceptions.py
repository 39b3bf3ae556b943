"""
Custom exceptions used across trx-reporter.
"""


class TrxReporterError(Exception):
    """Base class for errors raised by trx-reporter."""

    pass


class InvalidLogLevelError(TrxReporterError, ValueError):
    """Raised by setup_logger when the requested log level is unknown."""

    pass
