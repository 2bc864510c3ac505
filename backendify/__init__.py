"""Company lookup service that fronts per-country registry backends over HTTP."""

__version__ = "0.1.0"