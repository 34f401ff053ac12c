"""
Exception taxonomy for oomdp.

All errors raised by the planning and learning engines derive from OOMDPError.
The concrete classes additionally derive from the builtin exception a caller
would naturally expect (ValueError for bad parameters, RuntimeError for calls
made in the wrong order, KeyError for states that do not carry an expected
variable), so existing ``except ValueError`` style handlers keep working.

None of these errors are retriable: every engine is a deterministic local
computation over caller-supplied models. Exceptions raised by a model while
sampling or enumerating transitions are not wrapped and propagate unchanged.
"""


class OOMDPError(Exception):
    """Base class for all oomdp errors."""


class ConfigurationError(OOMDPError, ValueError):
    """A required collaborator is missing or a parameter is out of range."""


class IllegalStateError(OOMDPError, RuntimeError):
    """An object was reconfigured after it was frozen (e.g. agent definitions after planning started)."""


class UsageOrderError(OOMDPError, RuntimeError):
    """An operation was called before the operation it depends on."""


class PolicyUndefinedError(UsageOrderError):
    """A policy was queried for a state outside of the states it was computed for."""


class InvalidStateKind(OOMDPError, KeyError):
    """
    A state does not carry a variable that a hashing scheme or feature
    extractor expects.

    Args:
        message: Description of the problem.
        key: The offending variable key, if known.
    """

    def __init__(self, message: str, key=None):
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        return self.message
