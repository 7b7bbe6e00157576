class ConfigurationError(ValueError):
    """Generic error thrown if there was an error while reading the scenario file."""


class ScenarioConfigurationError(ConfigurationError):
    """An error occurred while validating the scenario setting of a scenario file."""


class SettingsConfigurationError(ConfigurationError):
    """An error occurred while validating the settings section of a scenario file."""


class TokenConfigurationError(ConfigurationError):
    """The token init parameters are incomplete or invalid.

    This includes a logo file which cannot be read.
    """


class IdentityConfigurationError(ConfigurationError):
    """An entry of the identities section is malformed."""
