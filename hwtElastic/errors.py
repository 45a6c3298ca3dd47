from typing import Optional, Union


class HsUserError(Exception):
    """
    Base class for errors caused by the input circuit or by the configuration.
    """


class StructuralError(HsUserError):
    """
    Exception raised when the invariant of the circuit graph is violated
    (type mismatch on sized operation with a single type, port connected twice, dangling port, ...)
    """


class ConfigurationError(HsUserError):
    """
    Exception raised when external configuration is malformed or references something which does not exist.

    :ivar ref: the offending reference (operation name/id, key in config, ...)
    """

    def __init__(self, msg: str, ref: Optional[Union[str, int]]=None, *args):
        super(ConfigurationError, self).__init__(msg, ref, *args)
        self.ref = ref


class InfeasibilityError(HsUserError):
    """
    Exception raised when buffer placement can not satisfy the constraints.
    The caller may retry with relaxed target.
    """


class StructuralInfeasibilityError(InfeasibilityError):
    """
    The constraints can not be satisfied under the delay model (e.g. the target throughput is unreachable).
    """


class SolverBudgetExceededError(InfeasibilityError):
    """
    The solver did not find the solution within configured time limit.
    """


class RegionLegalityError(HsUserError):
    """
    Exception raised when the speculative region can not be found or when the region specified by user is illegal.

    :ivar speculator: the reference of the speculator position
    """

    def __init__(self, msg: str, speculator: Optional[Union[str, int]]=None, *args):
        super(RegionLegalityError, self).__init__(msg, speculator, *args)
        self.speculator = speculator


class InternalConsistencyError(AssertionError):
    """
    Exception raised when some postcondition of an already validated transformation does not hold.
    This is a bug in this library and not a problem of the input.
    """
