"""Errors raised while reading firmlink settings from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ConfigurationError(RuntimeError):
    """A setting such as a batch size or refresh delay has an unusable value."""


class MissingConfigurationError(ConfigurationError):
    """None of the accepted variables for a setting (e.g. a service key) is set.

    ``names`` lists the variables that were looked up; ``any_of`` marks them as
    alternatives rather than all being required.
    """

    def __init__(self, names: Sequence[str], *, any_of: bool = False) -> None:
        self.names = tuple(names)
        self.any_of = any_of
        joined = " or ".join(self.names) if any_of else ", ".join(self.names)
        super().__init__(f"Missing configuration for: {joined}")
