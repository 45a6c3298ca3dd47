from typing import Optional, Tuple

from hwt.hdl.types.hdlType import HdlType
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_BUFFER_TYPE
from hwtElastic.netlist.nodes.ports import HsNetNodeOut, HsNetNodeIn


class HsChannel():
    """
    A directed handshaked link from exactly one output port to exactly one input port.
    Endpoints are stored as integer ids of nodes in the arena of the netlist.

    :ivar srcNode: id of the producer node
    :ivar out_i: index of output port of the producer
    :ivar dstNode: id of the consumer node
    :ivar in_i: index of input port of the consumer
    :ivar _dtype: type of data transported by the channel (:data:`~.HVoidData` for control channels)
    :ivar combDelay: combinational delay estimate computed by
        :class:`hwtElastic.netlist.analysis.combDelay.HsNetlistAnalysisPassCombDelay` (None if not computed)

    :note: The buffer of the channel is represented by an operation of BUFFER kind
        connected as a consumer of this channel, see :meth:`~.getBuffer`.
    """

    def __init__(self, netlist: "HsNetlistCtx", _id: int,
                 srcNode: int, out_i: int,
                 dstNode: int, in_i: int,
                 dtype: HdlType):
        self.netlist = netlist
        self._id = _id
        self.srcNode = srcNode
        self.out_i = out_i
        self.dstNode = dstNode
        self.in_i = in_i
        self._dtype = dtype
        self.combDelay: Optional[float] = None

    @property
    def width(self) -> int:
        return self._dtype.bit_length()

    def getSrc(self) -> HsNetNodeOut:
        return self.netlist.nodes[self.srcNode]._outputs[self.out_i]

    def getDst(self) -> HsNetNodeIn:
        return self.netlist.nodes[self.dstNode]._inputs[self.in_i]

    def getSrcNode(self) -> "HsNetNode":
        return self.netlist.nodes[self.srcNode]

    def getDstNode(self) -> "HsNetNode":
        return self.netlist.nodes[self.dstNode]

    def getBuffer(self) -> Tuple[int, Optional[HS_BUFFER_TYPE]]:
        """
        :return: tuple slot count, buffer type, (0, None) if there is no buffer on this channel
        """
        dst = self.getDstNode()
        if dst.kind is HS_OP_KIND.BUFFER and not dst.attrs.get("placeholder", False):
            return dst.attrs["slots"], dst.attrs["bufferType"]
        else:
            return 0, None

    def getPrettyName(self) -> str:
        return f"{self.getSrc().getPrettyName():s}->{self.getDst().getPrettyName():s}"

    def __repr__(self):
        return f"<{self.__class__.__name__:s} {self._id:d} {self.srcNode:d}:{self.out_i:d}->{self.dstNode:d}:{self.in_i:d}>"
