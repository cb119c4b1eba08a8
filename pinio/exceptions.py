"""Exceptions which abort the task

Ordinary exceptions raised by the body of a sequence are not in here; they're
turned into an `outcome.Error` and carried up to whoever awaits the failing
operation, which can catch them and retry if it likes.

The exceptions here are different: they mean the operation tree itself is broken
(a programming defect) or that a leaf couldn't even get set up, and there's no
meaningful state to continue from. Combinators never convert a FatalError into an
outcome; they let it propagate straight out of `poll`, through the driver, and up
to whoever called `run`.

"""

__all__ = [
    "FatalError",
    "ContractViolation",
    "CancelUnimplementedError",
    "NestingTooDeepError",
    "PinnedError",
    "RegistrationError",
    "StalledError",
]

class FatalError(Exception):
    "Base class for errors that end the whole task."
    pass

class ContractViolation(FatalError):
    """Some operation was used in a way the poll/cancel contract forbids

    For example, polling an operation which has already returned a ready outcome,
    or yielding a non-Future out of a sequence body.
    """
    pass

class CancelUnimplementedError(ContractViolation):
    "An operation which never supplied a real `cancel` was cancelled."
    pass

class NestingTooDeepError(ContractViolation):
    "The operation tree is nested deeper than MAX_NESTING_DEPTH."
    pass

class PinnedError(ContractViolation):
    "Someone tried to copy an operation while it was in flight, or one which owns children."
    pass

class RegistrationError(FatalError):
    """The reactor couldn't register a timer

    A leaf whose entire purpose is the registration has nothing useful to do
    without it, so we don't retry.
    """
    pass

class StalledError(FatalError):
    """The root is pending, but nothing is registered that could ever wake it

    Without this we'd just wait forever.
    """
    pass
