"""
Error Taxonomy
==============
Exceptions raised by the simulation and inference machinery
"""


class EpidemicError(Exception):
    """Base class for all library errors"""


class ConfigurationError(EpidemicError, ValueError):
    """
    Malformed inputs detected at construction time: mismatched dimensions,
    wrong parameter-vector lengths, risk-function slots inconsistent with
    the disease model, invalid stopping limits.
    """


class HazardError(ConfigurationError):
    """A risk function produced a negative or non-finite rate"""

    def __init__(self, slot: str, individuals, value):
        self.slot = slot
        self.individuals = individuals
        self.value = value
        super().__init__(
            f"Risk function '{slot}' returned {value!r} for individual(s) {individuals}; "
            f"rates must be finite and non-negative"
        )


class InvalidRealizationError(EpidemicError):
    """
    An event history / transmission network that the model cannot produce.
    Raised by the likelihood evaluator instead of returning -inf so callers
    can tell structural invalidity apart from a very unlikely realization.
    """


class InitializationError(EpidemicError):
    """A Markov chain exhausted its initialization attempts"""

    def __init__(self, chain_id: int, attempts: int, last_error: Exception = None):
        self.chain_id = chain_id
        self.attempts = attempts
        self.last_error = last_error
        msg = f"Chain {chain_id} failed to initialize after {attempts} attempts"
        if last_error is not None:
            msg += f" (last error: {last_error})"
        super().__init__(msg)


class ChainError(EpidemicError):
    """A Markov chain stopped mid-iteration; siblings keep running"""

    def __init__(self, chain_id: int, sweep: int, cause: Exception, params=None):
        self.chain_id = chain_id
        self.sweep = sweep
        self.cause = cause
        self.params = params
        msg = f"Chain {chain_id} failed at sweep {sweep}: {cause}"
        if params is not None:
            values = ", ".join(f"{name}={value:g}"
                               for name, value in zip(params.names(), params.flatten()))
            msg += f" (parameters: {values})"
        super().__init__(msg)
