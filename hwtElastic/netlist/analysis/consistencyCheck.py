from hwt.pyUtils.typingFuture import override
from hwtElastic.errors import StructuralError, InternalConsistencyError
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass
from hwtElastic.netlist.nodes.node import HsNetNode, HsNetNode_checkSost
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND_isMemory, HS_OP_KIND_isSpeculation


class HsNetlistPassConsistencyCheck(HsNetlistAnalysisPass):
    """
    Check consistency of the HsNetlistCtx.

    :param allowDisconnected: if True the unconnected ports are not reported
    :raise StructuralError: if the circuit itself violates some invariant (dangling port, type mismatch, ...)
    :raise InternalConsistencyError: if the internal data structures are corrupted
    """

    def __init__(self, allowDisconnected: bool=False):
        super(HsNetlistPassConsistencyCheck, self).__init__()
        self.allowDisconnected = allowDisconnected

    @staticmethod
    def _checkNodePorts(netlist: "HsNetlistCtx", n: HsNetNode, allowDisconnected: bool):
        for in_i, i in enumerate(n._inputs):
            if i.obj is not n or i.in_i != in_i:
                raise InternalConsistencyError("Broken HsNetNodeIn object", n, in_i, i)
            if i.channel is None:
                if not allowDisconnected:
                    raise StructuralError("Unconnected input (dangling port)", i)
                continue
            ch = netlist.channels.get(i.channel, None)
            if ch is None:
                raise InternalConsistencyError("Input connected to a channel which is not in netlist", i, i.channel)
            if ch.dstNode != n._id or ch.in_i != in_i:
                raise InternalConsistencyError("Channel does not know about connected input", i, ch)

        for out_i, o in enumerate(n._outputs):
            if o.obj is not n or o.out_i != out_i:
                raise InternalConsistencyError("Broken HsNetNodeOut object", n, out_i, o)
            if o.channel is None:
                if not allowDisconnected:
                    raise StructuralError("Unconnected output (dangling port)", o)
                continue
            ch = netlist.channels.get(o.channel, None)
            if ch is None:
                raise InternalConsistencyError("Output connected to a channel which is not in netlist", o, o.channel)
            if ch.srcNode != n._id or ch.out_i != out_i:
                raise InternalConsistencyError("Channel does not know about connected output", o, ch)

    @override
    def runOnHsNetlistImpl(self, netlist: "HsNetlistCtx"):
        for nId, n in netlist.nodes.items():
            n: HsNetNode
            if n._id != nId or n.netlist is not netlist:
                raise InternalConsistencyError("Node registered under a wrong id or in a wrong netlist", nId, n)
            if n.name is not None and netlist._nameToNode.get(n.name, None) is not n:
                raise InternalConsistencyError("Node missing in name lookup", n)
            if not netlist.cfg.has_node(n.block):
                raise StructuralError("Node in a basic block which is not registered", n, n.block)
            if HS_OP_KIND_isMemory(n.kind) and n.memRef is None:
                raise StructuralError("Memory operation without memory reference", n)
            if HS_OP_KIND_isSpeculation(n.kind) and (len(n._inputs) != 1 or len(n._outputs) != 1):
                raise StructuralError("Speculation operation must have exactly one input and output", n)
            HsNetNode_checkSost(n)
            self._checkNodePorts(netlist, n, self.allowDisconnected)

        for chId, ch in netlist.channels.items():
            if ch._id != chId:
                raise InternalConsistencyError("Channel registered under a wrong id", chId, ch)
            src = netlist.nodes.get(ch.srcNode, None)
            dst = netlist.nodes.get(ch.dstNode, None)
            if src is None or dst is None:
                raise StructuralError("Channel connected to an operation which is not in netlist (dangling port)", ch)
            o = ch.getSrc()
            i = ch.getDst()
            if o.channel != chId or i.channel != chId:
                raise InternalConsistencyError("Port does not know about its channel", ch, o, i)
            if o._dtype != i._dtype or ch._dtype != o._dtype:
                raise StructuralError("Type of channel endpoints does not match", ch, o._dtype, i._dtype)

        if len(netlist._nameToNode) != sum(1 for n in netlist.nodes.values() if n.name is not None):
            raise InternalConsistencyError("Name lookup contains removed nodes")
