class ConfigError(Exception):
    """Raised when config/status.yaml is missing or malformed."""
    pass
