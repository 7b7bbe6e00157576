from collections.abc import Mapping
from typing import Any, Optional, Union

from dip20_player.exceptions.config import ConfigurationError


class ConfigMapping(Mapping):
    """Read-only view on one section of a scenario definition.

    Subclasses set :attr:`CONFIGURATION_ERROR` to the error type raised by
    :meth:`assert_option`, and check their section in :meth:`validate`.
    """

    CONFIGURATION_ERROR = ConfigurationError

    def __init__(self, section: Optional[Mapping]):
        self.dict = section or {}

    def __getitem__(self, key):
        return self.dict[key]

    def __iter__(self):
        return iter(self.dict)

    def __len__(self):
        return len(self.dict)

    def __eq__(self, other):
        if isinstance(other, ConfigMapping):
            other = other.dict
        if not isinstance(other, dict):
            raise TypeError(f"Cannot compare {type(self).__qualname__} with {type(other)}")
        return self.dict == other

    __hash__ = None

    def __repr__(self):
        return f"{type(self).__qualname__}({self.dict})"

    @classmethod
    def assert_option(cls, expression: Any, err: Optional[Union[str, Exception]] = None):
        """Raise :attr:`CONFIGURATION_ERROR` unless `expression` holds.

        If `err` is an exception instance, it is raised instead.
        """
        if expression:
            return
        if isinstance(err, Exception):
            raise err
        raise cls.CONFIGURATION_ERROR(err)

    def validate(self):
        """Check the section; the base class accepts anything."""
