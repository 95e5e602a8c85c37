"""Configuration errors."""


class ConfigError(Exception):
    """Raised when the pilestore configuration cannot be read, merged, or validated."""
