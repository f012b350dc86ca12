class ConfigurationError(ValueError):
    """Invalid analysis inputs: date range, band lists, region or grid mismatch.

    Fatal for the run and never retried.
    """
