class OpRealizationMeta():
    """
    Timing of an operation in the circuit.

    :ivar delay: combinational delay of the operation (ns), for sequential operations this is the delay
        from clock edge to the output
    :ivar latency: number of clock cycles between the input and the output (0 for combinational operations)
    """

    def __init__(self, delay: float=0.0, latency: int=0):
        self.delay = delay
        self.latency = latency

    def __eq__(self, other):
        return isinstance(other, OpRealizationMeta) and self.delay == other.delay and self.latency == other.latency

    def __hash__(self):
        return hash((self.delay, self.latency))

    def __repr__(self):
        return f"<{self.__class__.__name__:s} delay={self.delay} latency={self.latency:d}>"


EMPTY_OP_REALIZATION = OpRealizationMeta()
