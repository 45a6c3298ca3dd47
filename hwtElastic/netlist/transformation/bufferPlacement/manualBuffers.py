import json
from pathlib import Path
from typing import List, Optional, Union, Sequence

from hwt.pyUtils.typingFuture import override
from hwtElastic.errors import ConfigurationError
from hwtElastic.netlist.context import HsNetlistCtx, HsNodeRef
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.opKind import HS_BUFFER_TYPE
from hwtElastic.netlist.transformation.hsNetlistPass import HsNetlistPass
from hwtElastic.preservedAnalysisSet import PreservedAnalysisSet


class HsBufferPosition():
    """
    A request for a buffer on the channel connected to specified output of the producer operation.

    :ivar producer: name or id of the producer operation
    :ivar outIdx: index of the output port of the producer
    """

    def __init__(self, producer: HsNodeRef, outIdx: int, slots: int, bufferType: HS_BUFFER_TYPE):
        self.producer = producer
        self.outIdx = outIdx
        self.slots = slots
        self.bufferType = bufferType

    @classmethod
    def fromJson(cls, d: dict) -> "HsBufferPosition":
        if not isinstance(d, dict):
            raise ConfigurationError("Buffer position must be an object", repr(d))
        for k in ("operation", "index", "slots", "type"):
            if k not in d:
                raise ConfigurationError(f"Buffer position is missing key {k:s}", repr(d))
        t = d["type"]
        try:
            bufferType = HS_BUFFER_TYPE.fromStr(t)
        except (KeyError, AttributeError):
            raise ConfigurationError(f"Invalid buffer type {t!r}", t)
        return cls(d["operation"], d["index"], d["slots"], bufferType)

    def __repr__(self):
        return f"<{self.__class__.__name__:s} {self.producer!r}:{self.outIdx} {self.bufferType.name}x{self.slots}>"


def loadBufferPositionsJson(src: Union[str, Path, dict]) -> List[HsBufferPosition]:
    """
    Load buffer positions from JSON: {"buffers": [{"operation": ref, "index": i, "slots": n, "type": "opaque"|"transparent"}]}

    :param src: a path to a file, JSON string or already parsed dictionary
    """
    if isinstance(src, Path):
        with open(src) as f:
            d = json.load(f)
    elif isinstance(src, str):
        try:
            d = json.loads(src)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Malformed buffer positions: {e}", src)
    else:
        d = src

    if not isinstance(d, dict) or not isinstance(d.get("buffers", None), list):
        raise ConfigurationError("Buffer positions must be an object with \"buffers\" list", repr(d))
    return [HsBufferPosition.fromJson(b) for b in d["buffers"]]


class HsNetlistPassInsertBuffers(HsNetlistPass):
    """
    Insert buffers on explicitly specified channels.

    :attention: This does not check that cycles are broken or that timing is met, it is meant for prototyping
        and external scripting and it is unsafe for production use. All positions are validated before any insertion.
    """

    def __init__(self, positions: Sequence[HsBufferPosition], dbgTracer: Optional[DebugTracer]=None):
        self.positions = positions
        self._dbgTracer = dbgTracer if dbgTracer is not None else DebugTracer(None)

    @staticmethod
    def _resolve(netlist: HsNetlistCtx, positions: Sequence[HsBufferPosition]) -> List[HsChannel]:
        channels = []
        seen = set()
        for p in positions:
            if isinstance(p.slots, bool) or not isinstance(p.slots, int) or p.slots < 1:
                raise ConfigurationError(f"Invalid slot count {p.slots!r} for buffer on {p.producer!r}:{p.outIdx!r}", p.producer)
            if not isinstance(p.bufferType, HS_BUFFER_TYPE):
                raise ConfigurationError(f"Invalid buffer type {p.bufferType!r}", p.producer)
            ch = netlist.getChannelOfOutput(p.producer, p.outIdx)
            if ch._id in seen:
                raise ConfigurationError(f"Multiple buffers specified for {p.producer!r}:{p.outIdx!r}", p.producer)
            seen.add(ch._id)
            channels.append(ch)
        return channels

    @override
    def runOnHsNetlistImpl(self, netlist: HsNetlistCtx) -> PreservedAnalysisSet:
        channels = self._resolve(netlist, self.positions)
        b = netlist.builder
        dbg = self._dbgTracer
        with dbg.scoped(HsNetlistPassInsertBuffers, None):
            for p, ch in zip(self.positions, channels):
                dbg.log(("insert", p))
                producer = ch.getSrcNode()
                buff = b.buildUnconnectedBuffer(ch._dtype, p.slots, p.bufferType, producer.block)
                netlist.insertNodeOnChannel(ch, buff)

        return PreservedAnalysisSet.preserveBlockDominators()
