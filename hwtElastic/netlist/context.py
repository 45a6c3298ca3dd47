from contextlib import contextmanager
from io import StringIO
from typing import Dict, Optional, List, Callable, Union, Tuple, Generator

from networkx.classes.digraph import DiGraph

from hwt.pyUtils.typingFuture import override
from hwtElastic.analysisCache import AnalysisCache
from hwtElastic.errors import StructuralError, ConfigurationError
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.node import HsNetNode, HsNetNode_checkSost
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_BUFFER_TYPE, HS_OP_KIND_hasSpliceShape
from hwtElastic.netlist.nodes.ports import HsNetNodeOut, HsNetNodeIn

HsNodeRef = Union[str, int, HsNetNode]


class HsNetlistCtx(AnalysisCache):
    """
    Handshake circuit netlist context.
    The owner of all operations (nodes) and channels of the circuit.

    :ivar label: a name of this netlist (used for debug files)
    :ivar platform: platform with configuration (timing model, clock period, ...)
    :ivar nodes: arena of all nodes, id -> node
    :ivar channels: arena of all channels, id -> channel
    :ivar cfg: control flow graph of basic blocks (nodes of this graph are ids of blocks)
    :ivar entryBlock: id of the entry basic block
    :ivar _nameToNode: dictionary for lookup of node by name
    :ivar _undoLog: journal of mutations of the current transaction (None if there is no transaction)
    :ivar _structVersion: counter incremented on each structural change, used to detect outdated analyses
    """

    def __init__(self, label: str, platform: Optional["DefaultHsPlatform"]=None):
        self.label = label
        if platform is None:
            from hwtElastic.platform.virtual import VirtualHsPlatform
            platform = VirtualHsPlatform()
        self.platform = platform
        self.nodes: Dict[int, HsNetNode] = {}
        self.channels: Dict[int, HsChannel] = {}
        self._uniqIdCntr = 0
        self._nameToNode: Dict[str, HsNetNode] = {}
        self.cfg = DiGraph()
        self.entryBlock: Optional[int] = None
        self._undoLog: Optional[List[Callable[[], None]]] = None
        self._structVersion = 0
        AnalysisCache.__init__(self)
        self._dbgLogPassExec: Optional[StringIO] = platform.getPassManagerDebugLogFile()

        from hwtElastic.netlist.builder import HsNetlistBuilder
        self.builder = HsNetlistBuilder(self)

    def getUniqId(self):
        n = self._uniqIdCntr
        self._uniqIdCntr += 1
        return n

    @override
    def _runAnalysisImpl(self, a: HsNetlistAnalysisPass):
        return a.runOnHsNetlist(self)

    @override
    def _isAnalysisUpToDate(self, a: HsNetlistAnalysisPass) -> bool:
        return getattr(a, "_netlistVersion", None) == self._structVersion

    # transactions
    @contextmanager
    def transaction(self):
        """
        All changes made in this context are undone if an exception is raised.
        Transactions can be nested, the rollback of the inner one undoes only changes of the inner one.
        """
        isOuter = self._undoLog is None
        if isOuter:
            self._undoLog = []
        log = self._undoLog
        mark = len(log)
        idCntr = self._uniqIdCntr
        try:
            yield self
        except BaseException:
            self._undoLog = None
            try:
                while len(log) > mark:
                    log.pop()()
            finally:
                self._undoLog = None if isOuter else log
                self._uniqIdCntr = idCntr
                self._structVersion += 1
                self.invalidateAllAnalysis()
            raise
        else:
            if isOuter:
                self._undoLog = None

    def _journal(self, undo: Callable[[], None]):
        log = self._undoLog
        if log is not None:
            log.append(undo)

    def _structChanged(self):
        self._structVersion += 1

    # basic blocks
    def addBlock(self, block: int):
        if not self.cfg.has_node(block):
            self.cfg.add_node(block)
            self._structChanged()
            self._journal(lambda: self._removeBlock(block))
        if self.entryBlock is None:
            self.entryBlock = block
            self._journal(lambda: setattr(self, "entryBlock", None))

    def _removeBlock(self, block: int):
        self.cfg.remove_node(block)
        self._structChanged()

    def addBlockEdge(self, src: int, dst: int):
        """
        Add an edge into control flow graph of basic blocks
        """
        self.addBlock(src)
        self.addBlock(dst)
        if not self.cfg.has_edge(src, dst):
            self.cfg.add_edge(src, dst)
            self._structChanged()
            self._journal(lambda: (self.cfg.remove_edge(src, dst), self._structChanged()))

    def iterNodesInBlock(self, block: int) -> Generator[HsNetNode, None, None]:
        for n in self.nodes.values():
            if n.block == block:
                yield n

    # nodes
    def addNode(self, n: HsNetNode):
        if n._id in self.nodes:
            raise StructuralError("Node is already in netlist", n)
        if n.netlist is not self:
            raise StructuralError("Node belongs to a different netlist", n)
        for p in n._inputs:
            if p.channel is not None:
                raise StructuralError("Newly added node must not be connected", n, p)
        for p in n._outputs:
            if p.channel is not None:
                raise StructuralError("Newly added node must not be connected", n, p)
        if n.name is not None and n.name in self._nameToNode:
            raise StructuralError("Duplicit node name", n.name, self._nameToNode[n.name], n)
        if n.block is None:
            raise StructuralError("Each node must belong to a basic block", n)

        HsNetNode_checkSost(n)
        self.addBlock(n.block)
        self._addNode(n)
        self._journal(lambda: self._removeNode(n))

    def _addNode(self, n: HsNetNode):
        self.nodes[n._id] = n
        if n.name is not None:
            self._nameToNode[n.name] = n
        self._structChanged()

    def _removeNode(self, n: HsNetNode):
        self.nodes.pop(n._id)
        if n.name is not None:
            self._nameToNode.pop(n.name)
        self._structChanged()

    def getNode(self, ref: HsNodeRef) -> HsNetNode:
        """
        :param ref: a name, an id or node object itself
        :raise ConfigurationError: if the node does not exist in this netlist
        """
        if isinstance(ref, HsNetNode):
            n = self.nodes.get(ref._id, None)
            if n is not ref:
                raise ConfigurationError("Node is not part of this netlist", ref._id)
            return n
        elif isinstance(ref, str):
            n = self._nameToNode.get(ref, None)
        elif isinstance(ref, int) and not isinstance(ref, bool):
            n = self.nodes.get(ref, None)
        else:
            raise ConfigurationError("Invalid type of node reference", repr(ref))

        if n is None:
            raise ConfigurationError(f"Operation {ref!r} does not exist", ref)
        return n

    def removeNode(self, n: HsNetNode):
        """
        Delete the node which has exactly one input and one output,
        the producer of input channel is reconnected to the consumer of the output channel.

        :raise StructuralError: if the node does not have a single input and output or if the removal
            would leave a dangling port or if the types of input and output differ
        """
        if self.nodes.get(n._id, None) is not n:
            raise StructuralError("Node is not in netlist", n)
        if len(n._inputs) != 1 or len(n._outputs) != 1:
            raise StructuralError("Only node with exactly one input and output can be deleted", n)
        inCh = n._inputs[0].channel
        outCh = n._outputs[0].channel
        if (inCh is None) != (outCh is None):
            raise StructuralError("Removal of the node would create a dangling port", n)
        if inCh is not None:
            inCh = self.channels[inCh]
            outCh = self.channels[outCh]
            if inCh._dtype != outCh._dtype:
                raise StructuralError("Input and output of removed node have a different type", n, inCh._dtype, outCh._dtype)
            if inCh.srcNode == n._id:
                raise StructuralError("Node connected to itself can not be removed", n)

        with self.transaction():
            if inCh is not None:
                src = inCh.getSrc()
                dst = outCh.getDst()
                self._disconnect(inCh)
                self._disconnect(outCh)
            self._removeNode(n)
            self._journal(lambda: self._addNode(n))
            if inCh is not None:
                self.connect(src, dst)

    # channels
    def connect(self, src: HsNetNodeOut, dst: HsNetNodeIn) -> HsChannel:
        """
        Create a channel from src to dst

        :raise StructuralError: if any port is already connected, it is not in this netlist or types do not match
        """
        for p in (src, dst):
            if self.nodes.get(p.obj._id, None) is not p.obj:
                raise StructuralError("Port of a node which is not in the netlist (dangling port)", p)
            if p.channel is not None:
                raise StructuralError("Port is already connected (channel can not be shared)", p, self.channels[p.channel])

        if src._dtype != dst._dtype:
            raise StructuralError("Type of channel endpoints does not match", src, dst, src._dtype, dst._dtype)

        ch = HsChannel(self, self.getUniqId(), src.obj._id, src.out_i, dst.obj._id, dst.in_i, src._dtype)
        self._connect(ch)
        self._journal(lambda: self._disconnect(ch, journal=False))
        return ch

    def _connect(self, ch: HsChannel):
        self.channels[ch._id] = ch
        ch.getSrc().channel = ch._id
        ch.getDst().channel = ch._id
        self._structChanged()

    def _disconnect(self, ch: HsChannel, journal=True):
        self.channels.pop(ch._id)
        ch.getSrc().channel = None
        ch.getDst().channel = None
        self._structChanged()
        if journal:
            self._journal(lambda: self._connect(ch))

    def rewireChannel(self, ch: HsChannel,
                      newSrc: Optional[HsNetNodeOut]=None,
                      newDst: Optional[HsNetNodeIn]=None) -> HsChannel:
        """
        Replace the channel with a channel with modified endpoints.
        The port which is not used anymore is left unconnected.

        :raise StructuralError: if new endpoints are not valid (whole operation is reverted)
        """
        if self.channels.get(ch._id, None) is not ch:
            raise StructuralError("Channel is not in netlist", ch)
        src = ch.getSrc() if newSrc is None else newSrc
        dst = ch.getDst() if newDst is None else newDst
        with self.transaction():
            self._disconnect(ch)
            return self.connect(src, dst)

    def insertNodeOnChannel(self, ch: HsChannel, n: HsNetNode) -> Tuple[HsChannel, HsChannel]:
        """
        Splice a buffer, branch or speculation node into existing channel.
        The original channel is replaced by two new channels.

        :param n: the node which is not part of netlist yet or it is in netlist but it is not connected
        :return: channel from original producer to n, channel from n to original consumer
        """
        if self.channels.get(ch._id, None) is not ch:
            raise StructuralError("Channel is not in netlist", ch)
        if not HS_OP_KIND_hasSpliceShape(n.kind) or len(n._inputs) != 1 or len(n._outputs) != 1:
            raise StructuralError("Only buffer, branch or speculation node with exactly one input and output can be inserted on channel", n)
        if n._inputs[0]._dtype != ch._dtype or n._outputs[0]._dtype != ch._dtype:
            raise StructuralError("Type of inserted node ports does not match the channel", n, ch._dtype)

        src = ch.getSrc()
        dst = ch.getDst()
        with self.transaction():
            if n._id not in self.nodes:
                self.addNode(n)
            self._disconnect(ch)
            chIn = self.connect(src, n._inputs[0])
            chOut = self.connect(n._outputs[0], dst)
        return chIn, chOut

    def getChannelOfOutput(self, producer: HsNodeRef, out_i: int) -> HsChannel:
        """
        :raise ConfigurationError: if the producer does not exist, the index is out of range or the output is not connected
        """
        n = self.getNode(producer)
        if isinstance(out_i, bool) or not isinstance(out_i, int) or out_i < 0 or out_i >= len(n._outputs):
            raise ConfigurationError(f"Output index {out_i!r} out of range for operation {n.getPrettyName():s}", producer)
        chId = n._outputs[out_i].channel
        if chId is None:
            raise ConfigurationError(f"Output {out_i:d} of operation {n.getPrettyName():s} is not connected", producer)
        return self.channels[chId]

    def getChannelBuffer(self, producer: HsNodeRef, out_i: int) -> Tuple[int, Optional[HS_BUFFER_TYPE]]:
        """
        :return: slot count and buffer type of the buffer connected to specified output, (0, None) if there is not any
        """
        return self.getChannelOfOutput(producer, out_i).getBuffer()

    # node attributes
    def setNodeAttr(self, n: HsNetNode, key: str, value):
        attrs = n.attrs
        if key in attrs:
            prev = attrs[key]
            self._journal(lambda: attrs.__setitem__(key, prev))
        else:
            self._journal(lambda: attrs.pop(key))
        attrs[key] = value

    def setSpeculativeRegionMember(self, n: HsNetNode, v: bool):
        prev = n.isSpeculativeRegionMember
        if prev != v:
            n.isSpeculativeRegionMember = v
            self._journal(lambda: setattr(n, "isSpeculativeRegionMember", prev))

    def setChannelCombDelay(self, ch: HsChannel, v: Optional[float]):
        prev = ch.combDelay
        if prev != v:
            ch.combDelay = v
            self._journal(lambda: setattr(ch, "combDelay", prev))

    # queries
    def iterNodesOfKind(self, *kinds: HS_OP_KIND) -> Generator[HsNetNode, None, None]:
        for n in self.nodes.values():
            if n.kind in kinds:
                yield n

    def isChannelOnCycle(self, ch: HsChannel) -> bool:
        from hwtElastic.netlist.analysis.cycles import HsNetlistAnalysisPassCycles
        return self.getAnalysis(HsNetlistAnalysisPassCycles).isChannelOnCycle(ch)

    def dominates(self, a: HsNetNode, b: HsNetNode) -> bool:
        """
        :return: True if a dominates b along the basic block hierarchy
            (basic block of a dominates basic block of b and b is reachable from a)
        """
        from hwtElastic.netlist.analysis.blockDominators import HsNetlistAnalysisPassBlockDominators
        return self.getAnalysis(HsNetlistAnalysisPassBlockDominators).nodeDominates(a, b)

    def __repr__(self):
        return f"<{self.__class__.__name__:s} {self.label:s}>"
