from typing import Dict

from networkx.algorithms.dominance import immediate_dominators

from hwt.pyUtils.typingFuture import override
from hwtElastic.errors import StructuralError
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass
from hwtElastic.netlist.analysis.reachability import HsNetlistAnalysisPassReachability
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND_isLoopHeaderCandidate


class HsNetlistAnalysisPassBlockDominators(HsNetlistAnalysisPass):
    """
    Dominator tree of basic blocks of the netlist.

    Block A dominates block B if every path from the entry block to B passes through A.
    An edge of control flow graph is a back-edge if its destination dominates its source.

    :ivar idom: immediate dominator for each block reachable from the entry block
        (entry block is its own immediate dominator)
    """

    def __init__(self):
        super(HsNetlistAnalysisPassBlockDominators, self).__init__()
        self.idom: Dict[int, int] = {}
        self._netlist = None

    def blockDominates(self, a: int, b: int) -> bool:
        idom = self.idom
        if b not in idom:
            # unreachable block is dominated only by itself
            return a == b
        while True:
            if b == a:
                return True
            parent = idom[b]
            if parent == b:
                return False
            b = parent

    def isBackEdge(self, src: int, dst: int) -> bool:
        return self._netlist.cfg.has_edge(src, dst) and self.blockDominates(dst, src)

    def nodeDominates(self, a: HsNetNode, b: HsNetNode) -> bool:
        """
        Dominance of operations along the basic block hierarchy.
        Operation a dominates b if block of a dominates block of b and b is reachable from a.
        """
        if a is b:
            return True
        if not self.blockDominates(a.block, b.block):
            return False
        reach: HsNetlistAnalysisPassReachability = self._netlist.getAnalysis(HsNetlistAnalysisPassReachability)
        return reach.isReachableFrom(a, b)

    def isLoopBackEdge(self, ch: HsChannel) -> bool:
        """
        :return: True if the channel transports a loop carried value into a loop header
        """
        src = ch.getSrcNode()
        dst = ch.getDstNode()
        if src.block != dst.block:
            return self.isBackEdge(src.block, dst.block)
        else:
            return HS_OP_KIND_isLoopHeaderCandidate(dst.kind) and self._netlist.isChannelOnCycle(ch)

    @override
    def runOnHsNetlistImpl(self, netlist: "HsNetlistCtx"):
        self._netlist = netlist
        entry = netlist.entryBlock
        if entry is None:
            if netlist.nodes:
                raise StructuralError("Netlist has operations but it does not have any basic block")
            return
        idom = dict(immediate_dominators(netlist.cfg, entry))
        idom[entry] = entry
        self.idom = idom
