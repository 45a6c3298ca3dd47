from itertools import chain
from typing import List, Optional, Dict, Generator

from hwt.hdl.types.hdlType import HdlType
from hwtElastic.errors import StructuralError
from hwtElastic.netlist.hdlTypeVoid import HdlType_isVoid
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_OP_KIND_isSost, \
    HS_OP_KIND_getTimingKey
from hwtElastic.netlist.nodes.ports import HsNetNodeIn, HsNetNodeOut


class HsNetNode():
    """
    An operation in handshake circuit.

    The operation is a tagged variant, the kind specific behavior is resolved by functions
    in :mod:`hwtElastic.netlist.nodes.opKind` and in this module.

    :ivar netlist: reference on parent netlist
    :ivar _id: unique integer id (a handle in the arena of the netlist)
    :ivar kind: the tag of the operation
    :ivar name: optional name, unique in netlist if specified
    :ivar block: id of the basic block this operation belongs to
    :ivar memRef: optional name of the memory for load/store/memory interface
    :ivar attrs: kind specific payload (e.g. "operator" for OPERATOR, "slots" and "bufferType" for BUFFER)
    :ivar isSpeculativeRegionMember: marker set by the region annotator
    :ivar _inputs: list of input ports
    :ivar _outputs: list of output ports
    """

    def __init__(self, netlist: "HsNetlistCtx", kind: HS_OP_KIND,
                 name: Optional[str]=None,
                 block: Optional[int]=None,
                 memRef: Optional[str]=None,
                 attrs: Optional[Dict[str, object]]=None):
        self.netlist = netlist
        self._id = netlist.getUniqId()
        assert isinstance(kind, HS_OP_KIND), kind
        self.kind = kind
        self.name = name
        self.block = block
        self.memRef = memRef
        self.attrs: Dict[str, object] = {} if attrs is None else attrs
        self.isSpeculativeRegionMember = False
        self._inputs: List[HsNetNodeIn] = []
        self._outputs: List[HsNetNodeOut] = []

    def _addInput(self, t: HdlType, name: Optional[str]=None) -> HsNetNodeIn:
        i = HsNetNodeIn(self, len(self._inputs), t, name)
        self._inputs.append(i)
        return i

    def _addOutput(self, t: HdlType, name: Optional[str]=None) -> HsNetNodeOut:
        o = HsNetNodeOut(self, len(self._outputs), t, name)
        self._outputs.append(o)
        return o

    @property
    def isControl(self) -> bool:
        """
        True if this operation transports only synchronization tokens (no data payload)
        """
        ports = self._outputs if self._outputs else self._inputs
        if not ports:
            return False
        return all(HdlType_isVoid(p._dtype) for p in ports)

    def getTimingKey(self) -> str:
        if self.kind is HS_OP_KIND.OPERATOR:
            return self.attrs["operator"]
        return HS_OP_KIND_getTimingKey(self.kind)

    def iterInputChannels(self) -> Generator["HsChannel", None, None]:
        channels = self.netlist.channels
        for i in self._inputs:
            if i.channel is not None:
                yield channels[i.channel]

    def iterOutputChannels(self) -> Generator["HsChannel", None, None]:
        channels = self.netlist.channels
        for o in self._outputs:
            if o.channel is not None:
                yield channels[o.channel]

    def iterSuccessors(self) -> Generator["HsNetNode", None, None]:
        for ch in self.iterOutputChannels():
            yield ch.getDstNode()

    def iterPredecessors(self) -> Generator["HsNetNode", None, None]:
        for ch in self.iterInputChannels():
            yield ch.getSrcNode()

    def getPrettyName(self) -> str:
        if self.name:
            return self.name
        return f"n{self._id:d}"

    def __repr__(self) -> str:
        if self.kind is HS_OP_KIND.OPERATOR:
            kindStr = self.attrs["operator"]
        else:
            kindStr = self.kind.name
        if self.name:
            return f"<{self.__class__.__name__:s} {self._id:d} {kindStr:s} {self.name:s}>"
        else:
            return f"<{self.__class__.__name__:s} {self._id:d} {kindStr:s}>"


def HsNetNode_getSostSize(n: HsNetNode) -> int:
    kind = n.kind
    if kind in (HS_OP_KIND.FORK, HS_OP_KIND.LAZY_FORK):
        return len(n._outputs)
    elif kind in (HS_OP_KIND.MERGE, HS_OP_KIND.CONTROL_MERGE):
        return len(n._inputs)
    elif kind is HS_OP_KIND.BUFFER:
        return n.attrs.get("slots", 0)
    else:
        raise ValueError("Not a sized operation with a single type", n)


def HsNetNode_iterSostDataPorts(n: HsNetNode):
    kind = n.kind
    if kind is HS_OP_KIND.CONTROL_MERGE:
        # the second output is an index of selected input, it has own type
        return chain(n._inputs, n._outputs[:1])
    else:
        return chain(n._inputs, n._outputs)


def HsNetNode_checkSost(n: HsNetNode):
    """
    :raise StructuralError: if n is SOST operation and its size is < 1 or its data ports do not share a single type
    """
    if not HS_OP_KIND_isSost(n.kind):
        return

    size = HsNetNode_getSostSize(n)
    if size < 1:
        raise StructuralError("Sized operation with a single type must have size >= 1", n, size)

    if n.kind is HS_OP_KIND.BUFFER and (len(n._inputs) != 1 or len(n._outputs) != 1):
        raise StructuralError("Buffer must have exactly one input and one output", n)

    if n.kind is HS_OP_KIND.CONTROL_MERGE and len(n._outputs) != 2:
        raise StructuralError("Control merge must have data and index output", n)

    t = None
    for p in HsNetNode_iterSostDataPorts(n):
        if t is None:
            t = p._dtype
        elif p._dtype != t:
            raise StructuralError("Sized operation with a single type has ports of a different type", n, p, t, p._dtype)
