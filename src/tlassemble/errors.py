"""Exception hierarchy and process exit codes for tlassemble."""

from __future__ import annotations

import errno


class AssemblyError(Exception):
    """Base error for fatal assembly failures."""

    exit_code: int = 1


class InvalidArgumentError(AssemblyError):
    """A command-line value could not be parsed or is out of range."""

    exit_code = errno.EINVAL


class DestinationError(AssemblyError):
    """The output destination cannot be written."""


class DiscoveryError(AssemblyError):
    """An input root could not be enumerated."""

    exit_code = errno.EIO


class NoInputError(AssemblyError):
    """No usable frames were found or encoded."""


class EncodeError(AssemblyError):
    """The compression engine or container writer failed."""
