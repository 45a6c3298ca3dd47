from typing import Dict, Set

from networkx.algorithms.dag import descendants
from networkx.classes.digraph import DiGraph

from hwt.pyUtils.typingFuture import override
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass
from hwtElastic.netlist.nodes.node import HsNetNode


class HsNetlistAnalysisPassReachability(HsNetlistAnalysisPass):
    """
    This analysis is used to query reachability between operations of the netlist.

    :ivar opGraph: graph of operations where nodes are ids of operations and an edge exists
        if there is any channel between operations
    :ivar _reachCache: cache of transitive successors for operations which were already queried
    """

    def __init__(self):
        super(HsNetlistAnalysisPassReachability, self).__init__()
        self.opGraph = DiGraph()
        self._reachCache: Dict[int, Set[int]] = {}

    def getReachableFrom(self, n: HsNetNode) -> Set[int]:
        """
        :return: set of ids of operations reachable from n (n itself is always included)
        """
        res = self._reachCache.get(n._id, None)
        if res is None:
            res = descendants(self.opGraph, n._id)
            res.add(n._id)
            self._reachCache[n._id] = res
        return res

    def isReachableFrom(self, src: HsNetNode, dst: HsNetNode) -> bool:
        return dst._id in self.getReachableFrom(src)

    @override
    def runOnHsNetlistImpl(self, netlist: "HsNetlistCtx"):
        g = self.opGraph
        g.add_nodes_from(netlist.nodes.keys())
        for ch in netlist.channels.values():
            g.add_edge(ch.srcNode, ch.dstNode)
