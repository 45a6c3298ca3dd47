from enum import Enum


class HS_OP_KIND(Enum):
    """
    Catalog of kinds of operations in handshake circuit.
    The kind is a tag of the operation, the behavior specific for a kind is resolved
    by functions in this module (instead of by inheritance).

    :cvar ENTRY: an argument of the function (start of the token flow), no inputs
    :cvar END: the return/end of the function, consumes tokens, no outputs, externally observable
    :cvar SOURCE: produces a control token every time it is ready
    :cvar SINK: discards all tokens
    :cvar CONSTANT: produces a constant when triggered by control token
    :cvar FORK: copies token to all outputs
    :cvar LAZY_FORK: fork which emits only if all outputs are ready
    :cvar MERGE: forwards token from any input
    :cvar CONTROL_MERGE: like merge but also outputs the index of the input used
    :cvar MUX: forwards token from the input selected by the select input (input 0)
    :cvar BRANCH: unconditional branch (used on basic block boundaries)
    :cvar COND_BRANCH: forwards the data (input 1) to output 0 or 1 depending on condition (input 0)
    :cvar BUFFER: storage with N slots of transparent or opaque type
    :cvar LOAD: load port (address in, data from memory in) -> (data out, address to memory)
    :cvar STORE: store port (address, data) -> (address to memory, data to memory)
    :cvar MEM_INTERFACE: memory controller/LSQ shared by load and store ports
    :cvar SPECULATOR: the root of the speculation, emits unconfirmed value
    :cvar SAVE: keeps the value for a possible rollback of the speculation
    :cvar COMMIT: releases (or discards) the speculative value when the speculation is resolved
    :cvar OPERATOR: generic arithmetic/logic operation, the operator name is in attrs["operator"]
    """
    ENTRY, END, SOURCE, SINK, CONSTANT, \
    FORK, LAZY_FORK, MERGE, CONTROL_MERGE, MUX, BRANCH, COND_BRANCH, \
    BUFFER, \
    LOAD, STORE, MEM_INTERFACE, \
    SPECULATOR, SAVE, COMMIT, \
    OPERATOR = range(20)


class HS_BUFFER_TYPE(Enum):
    """
    :cvar TRANSPARENT: slot may pass the token in the same clock cycle (does not break combinational path)
    :cvar OPAQUE: slot always delays the token by at least one clock cycle, the only element which breaks a combinational cycle
    """
    TRANSPARENT, OPAQUE = range(2)

    @classmethod
    def fromStr(cls, s: str) -> "HS_BUFFER_TYPE":
        return cls[s.upper()]


_SOST_KINDS = frozenset((
    HS_OP_KIND.FORK,
    HS_OP_KIND.LAZY_FORK,
    HS_OP_KIND.MERGE,
    HS_OP_KIND.CONTROL_MERGE,
    HS_OP_KIND.BUFFER,
))

_SPECULATION_KINDS = frozenset((
    HS_OP_KIND.SPECULATOR,
    HS_OP_KIND.SAVE,
    HS_OP_KIND.COMMIT,
))

_MEMORY_KINDS = frozenset((
    HS_OP_KIND.LOAD,
    HS_OP_KIND.STORE,
    HS_OP_KIND.MEM_INTERFACE,
))

# operations where the token leaves the circuit or modifies its environment
_EXTERNALLY_OBSERVABLE_KINDS = frozenset((
    HS_OP_KIND.END,
    HS_OP_KIND.STORE,
    HS_OP_KIND.MEM_INTERFACE,
))

_LOOP_HEADER_KINDS = frozenset((
    HS_OP_KIND.MERGE,
    HS_OP_KIND.CONTROL_MERGE,
    HS_OP_KIND.MUX,
))


def HS_OP_KIND_isSost(kind: HS_OP_KIND):
    """
    :return: True if the operation is "sized operation with a single type", all data ports
        must have the same type and the size must be >= 1
    """
    return kind in _SOST_KINDS


def HS_OP_KIND_isSpeculation(kind: HS_OP_KIND):
    return kind in _SPECULATION_KINDS


def HS_OP_KIND_isMemory(kind: HS_OP_KIND):
    return kind in _MEMORY_KINDS


def HS_OP_KIND_isExternallyObservable(kind: HS_OP_KIND):
    return kind in _EXTERNALLY_OBSERVABLE_KINDS


def HS_OP_KIND_isLoopHeaderCandidate(kind: HS_OP_KIND):
    return kind in _LOOP_HEADER_KINDS


def HS_OP_KIND_hasSpliceShape(kind: HS_OP_KIND):
    """
    :return: True if the operation of this kind can be spliced into a channel (single input, single output)
    """
    return kind is HS_OP_KIND.BUFFER or kind is HS_OP_KIND.BRANCH or kind in _SPECULATION_KINDS


def HS_OP_KIND_getTimingKey(kind: HS_OP_KIND) -> str:
    return kind.name.lower()
