from math import ceil, log2
from typing import Optional, Sequence, Dict, List

from hwt.hdl.types.bits import HBits
from hwt.hdl.types.defs import BIT
from hwt.hdl.types.hdlType import HdlType
from hwtElastic.errors import StructuralError
from hwtElastic.netlist.hdlTypeVoid import HVoidData
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_BUFFER_TYPE
from hwtElastic.netlist.nodes.ports import HsNetNodeOut, HsNetNodeIn

HsNetNodeOutOrNone = Optional[HsNetNodeOut]


def _indexType(itemCnt: int) -> HBits:
    return HBits(max(1, ceil(log2(itemCnt))))


class HsNetlistBuilder():
    """
    This class is used to construct operations of the handshake circuit.
    Each build* method creates an operation, adds it to netlist and connects its inputs
    to specified outputs. If the input source is None the input is left unconnected
    (e.g. for backedges which are connected later using :meth:`~.connect`).

    :ivar block: basic block for newly created operations
    """

    def __init__(self, netlist: "HsNetlistCtx"):
        self.netlist = netlist
        self.block = 0

    def setBlock(self, block: int):
        self.netlist.addBlock(block)
        self.block = block

    @staticmethod
    def _resolveType(srcs: Sequence[HsNetNodeOutOrNone], dtype: Optional[HdlType]) -> HdlType:
        if dtype is not None:
            return dtype
        for s in srcs:
            if s is not None:
                return s._dtype
        raise StructuralError("Can not resolve data type, all sources are unconnected and type was not specified")

    def addOp(self, kind: HS_OP_KIND,
              inTypes: Sequence[HdlType],
              outTypes: Sequence[HdlType],
              srcs: Optional[Sequence[HsNetNodeOutOrNone]]=None,
              name: Optional[str]=None,
              block: Optional[int]=None,
              memRef: Optional[str]=None,
              attrs: Optional[Dict[str, object]]=None,
              inNames: Optional[Sequence[Optional[str]]]=None,
              outNames: Optional[Sequence[Optional[str]]]=None) -> HsNetNode:
        netlist = self.netlist
        if block is None:
            block = self.block
        n = HsNetNode(netlist, kind, name=name, block=block, memRef=memRef, attrs=attrs)
        for i, t in enumerate(inTypes):
            n._addInput(t, None if inNames is None else inNames[i])
        for i, t in enumerate(outTypes):
            n._addOutput(t, None if outNames is None else outNames[i])

        with netlist.transaction():
            netlist.addNode(n)
            if srcs is not None:
                if len(srcs) != len(inTypes):
                    raise StructuralError("Number of sources does not match number of inputs", n, len(srcs), len(inTypes))
                for src, i in zip(srcs, n._inputs):
                    if src is not None:
                        netlist.connect(src, i)
        return n

    def connect(self, src: HsNetNodeOut, dst: HsNetNodeIn) -> HsChannel:
        return self.netlist.connect(src, dst)

    def buildEntry(self, dtype: HdlType=HVoidData, name: Optional[str]=None) -> HsNetNode:
        """
        Start of the function, produces the control token which starts the execution
        """
        return self.addOp(HS_OP_KIND.ENTRY, (), (dtype,), name=name)

    def buildEnd(self, srcs: Sequence[HsNetNodeOutOrNone], dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        t = self._resolveType(srcs, dtype)
        return self.addOp(HS_OP_KIND.END, [t for _ in srcs], (), srcs, name=name)

    def buildSource(self, dtype: HdlType=HVoidData, name: Optional[str]=None) -> HsNetNode:
        return self.addOp(HS_OP_KIND.SOURCE, (), (dtype,), name=name)

    def buildSink(self, src: HsNetNodeOutOrNone, dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        t = self._resolveType((src,), dtype)
        return self.addOp(HS_OP_KIND.SINK, (t,), (), (src,), name=name)

    def buildConstant(self, dtype: HdlType, value, ctrl: HsNetNodeOutOrNone=None, name: Optional[str]=None) -> HsNetNode:
        """
        :param ctrl: control token which triggers the emission of the constant
        """
        return self.addOp(HS_OP_KIND.CONSTANT, (HVoidData,), (dtype,), (ctrl,), name=name,
                          attrs={"value": value})

    def buildFork(self, src: HsNetNodeOutOrNone, outCnt: int, dtype: Optional[HdlType]=None,
                  lazy: bool=False, name: Optional[str]=None) -> HsNetNode:
        t = self._resolveType((src,), dtype)
        kind = HS_OP_KIND.LAZY_FORK if lazy else HS_OP_KIND.FORK
        return self.addOp(kind, (t,), [t for _ in range(outCnt)], (src,), name=name)

    def buildMerge(self, srcs: Sequence[HsNetNodeOutOrNone], dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        t = self._resolveType(srcs, dtype)
        return self.addOp(HS_OP_KIND.MERGE, [t for _ in srcs], (t,), srcs, name=name)

    def buildControlMerge(self, srcs: Sequence[HsNetNodeOutOrNone], dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        """
        Merge which also outputs the index of the input which was selected.
        """
        t = self._resolveType(srcs, dtype)
        return self.addOp(HS_OP_KIND.CONTROL_MERGE, [t for _ in srcs], (t, _indexType(len(srcs))), srcs,
                          name=name, outNames=("data", "index"))

    def buildMux(self, sel: HsNetNodeOutOrNone, srcs: Sequence[HsNetNodeOutOrNone],
                 dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        t = self._resolveType(srcs, dtype)
        selT = _indexType(len(srcs)) if sel is None else sel._dtype
        return self.addOp(HS_OP_KIND.MUX, [selT, *(t for _ in srcs)], (t,), [sel, *srcs],
                          name=name, inNames=["sel", *(None for _ in srcs)])

    def buildBranch(self, src: HsNetNodeOutOrNone, dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        t = self._resolveType((src,), dtype)
        return self.addOp(HS_OP_KIND.BRANCH, (t,), (t,), (src,), name=name)

    def buildCondBranch(self, cond: HsNetNodeOutOrNone, src: HsNetNodeOutOrNone,
                        dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        t = self._resolveType((src,), dtype)
        return self.addOp(HS_OP_KIND.COND_BRANCH, (BIT, t), (t, t), (cond, src),
                          name=name, inNames=("cond", "data"), outNames=("true", "false"))

    def buildBuffer(self, src: HsNetNodeOutOrNone, slots: int, bufferType: HS_BUFFER_TYPE,
                    dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        t = self._resolveType((src,), dtype)
        return self.addOp(HS_OP_KIND.BUFFER, (t,), (t,), (src,), name=name,
                          attrs={"slots": slots, "bufferType": bufferType})

    def buildPlaceholderBuffer(self, src: HsNetNodeOutOrNone, dtype: Optional[HdlType]=None, name: Optional[str]=None) -> HsNetNode:
        """
        Buffer which only reserves a position in the circuit, it does not store anything and it is removed
        before buffer placement
        """
        t = self._resolveType((src,), dtype)
        return self.addOp(HS_OP_KIND.BUFFER, (t,), (t,), (src,), name=name,
                          attrs={"slots": 1, "bufferType": HS_BUFFER_TYPE.TRANSPARENT, "placeholder": True})

    def buildOperator(self, operator: str, srcs: Sequence[HsNetNodeOutOrNone], resT: Optional[HdlType]=None,
                      operandTypes: Optional[Sequence[HdlType]]=None, name: Optional[str]=None) -> HsNetNode:
        """
        :param operator: name of the operator, it is used as a key into timing model of the platform
        """
        if operandTypes is None:
            operandTypes = [self._resolveType((s,), None) for s in srcs]
        if resT is None:
            resT = operandTypes[0]
        return self.addOp(HS_OP_KIND.OPERATOR, operandTypes, (resT,), srcs, name=name,
                          attrs={"operator": operator})

    def buildLoad(self, memRef: str, addr: HsNetNodeOutOrNone, dataFromMem: HsNetNodeOutOrNone,
                  addrT: Optional[HdlType]=None, dataT: Optional[HdlType]=None,
                  name: Optional[str]=None) -> HsNetNode:
        """
        Load port, outputs: data for the circuit, address for the memory
        """
        addrT = self._resolveType((addr,), addrT)
        dataT = self._resolveType((dataFromMem,), dataT)
        return self.addOp(HS_OP_KIND.LOAD, (addrT, dataT), (dataT, addrT), (addr, dataFromMem),
                          name=name, memRef=memRef,
                          inNames=("addr", "dataFromMem"), outNames=("data", "addrToMem"))

    def buildStore(self, memRef: str, addr: HsNetNodeOutOrNone, data: HsNetNodeOutOrNone,
                   addrT: Optional[HdlType]=None, dataT: Optional[HdlType]=None,
                   name: Optional[str]=None) -> HsNetNode:
        addrT = self._resolveType((addr,), addrT)
        dataT = self._resolveType((data,), dataT)
        return self.addOp(HS_OP_KIND.STORE, (addrT, dataT), (addrT, dataT), (addr, data),
                          name=name, memRef=memRef,
                          inNames=("addr", "data"), outNames=("addrToMem", "dataToMem"))

    def buildMemInterface(self, memRef: str, srcs: Sequence[HsNetNodeOut],
                          outTypes: Sequence[HdlType]=(), name: Optional[str]=None) -> HsNetNode:
        inTypes: List[HdlType] = [s._dtype for s in srcs]
        return self.addOp(HS_OP_KIND.MEM_INTERFACE, inTypes, outTypes, srcs, name=name, memRef=memRef)

    def buildSpeculationOp(self, kind: HS_OP_KIND, dtype: HdlType, block: int,
                           name: Optional[str]=None, attrs: Optional[Dict[str, object]]=None) -> HsNetNode:
        """
        Create an unconnected speculator, save or commit operation, it is expected to be inserted
        on existing channel using :meth:`HsNetlistCtx.insertNodeOnChannel`
        """
        assert kind in (HS_OP_KIND.SPECULATOR, HS_OP_KIND.SAVE, HS_OP_KIND.COMMIT), kind
        return self.addOp(kind, (dtype,), (dtype,), None, name=name, block=block, attrs=attrs)

    def buildUnconnectedBuffer(self, dtype: HdlType, slots: int, bufferType: HS_BUFFER_TYPE, block: int,
                               name: Optional[str]=None) -> HsNetNode:
        return self.addOp(HS_OP_KIND.BUFFER, (dtype,), (dtype,), None, name=name, block=block,
                          attrs={"slots": slots, "bufferType": bufferType})

