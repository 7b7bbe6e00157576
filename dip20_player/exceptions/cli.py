from dip20_player.exceptions.config import ConfigurationError


class InvalidArgument(ConfigurationError):
    """A ``TYPE:VALUE`` argument given on the command line could not be parsed."""
