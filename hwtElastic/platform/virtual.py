from pathlib import Path
from typing import Dict, Optional, Union, Set

from hwtElastic.netlist.transformation.speculation.insertSpeculation import HS_SPECULATION_MODE
from hwtElastic.platform.debugBundle import HsDebugBundle, DebugId
from hwtElastic.platform.opRealizationMeta import OpRealizationMeta
from hwtElastic.platform.platform import DefaultHsPlatform

# operation: (delay in ns, latency in clock cycles)
VIRTUAL_OP_TIMINGS: Dict[str, OpRealizationMeta] = {
    # nearly constant with bit width
    "not": OpRealizationMeta(1.2),
    "and": OpRealizationMeta(1.2),
    "or": OpRealizationMeta(1.2),
    "xor": OpRealizationMeta(1.2),
    "shl": OpRealizationMeta(1.2),
    "shr": OpRealizationMeta(1.2),

    # nearly linear with bit width
    "add": OpRealizationMeta(1.5),
    "sub": OpRealizationMeta(1.5),
    "eq": OpRealizationMeta(1.5),
    "ne": OpRealizationMeta(1.5),
    "lt": OpRealizationMeta(1.5),
    "le": OpRealizationMeta(1.5),
    "gt": OpRealizationMeta(1.5),
    "ge": OpRealizationMeta(1.5),

    # pipelined
    "mul": OpRealizationMeta(0.6, 4),
    "div": OpRealizationMeta(0.9, 36),

    # handshake components
    "entry": OpRealizationMeta(0.0),
    "end": OpRealizationMeta(0.0),
    "source": OpRealizationMeta(0.0),
    "sink": OpRealizationMeta(0.0),
    "constant": OpRealizationMeta(0.0),
    "fork": OpRealizationMeta(0.1),
    "lazy_fork": OpRealizationMeta(0.1),
    "merge": OpRealizationMeta(0.4),
    "control_merge": OpRealizationMeta(0.5),
    "mux": OpRealizationMeta(0.5),
    "branch": OpRealizationMeta(0.0),
    "cond_branch": OpRealizationMeta(0.3),
    "buffer": OpRealizationMeta(0.3),
    "load": OpRealizationMeta(0.2, 2),
    "store": OpRealizationMeta(0.2),
    "mem_interface": OpRealizationMeta(0.5, 1),
    "speculator": OpRealizationMeta(0.4),
    "save": OpRealizationMeta(0.2),
    "commit": OpRealizationMeta(0.3),

    "default": OpRealizationMeta(1.0),
}


class VirtualHsPlatform(DefaultHsPlatform):
    """
    Platform with timing of an abstract target

    :note: delays like in average 28nm FPGA, 250MHz clock
    """

    def __init__(self, clkPeriod: float=4.0,
                 targetThroughput: float=0.5,
                 debugDir: Optional[Union[str, Path]]=None,
                 debugFilter: Optional[Set[DebugId]]=HsDebugBundle.DEFAULT,
                 **kwargs):
        kwargs.setdefault("speculationMode", HS_SPECULATION_MODE.EXPLICIT)
        super(VirtualHsPlatform, self).__init__(clkPeriod, targetThroughput, VIRTUAL_OP_TIMINGS,
                                                debugDir=debugDir, debugFilter=debugFilter, **kwargs)
