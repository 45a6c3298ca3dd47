from itertools import product
from typing import List, Dict, Tuple, Optional

from networkx.algorithms.components.strongly_connected import strongly_connected_components
from networkx.algorithms.cycles import simple_cycles
from networkx.classes.digraph import DiGraph

from hwt.pyUtils.typingFuture import override
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_BUFFER_TYPE


class HsCycle():
    """
    An elementary cycle in the netlist (a loop feedback path).

    :ivar nodes: operations on the cycle, starting by the operation with the lowest id
    :ivar channels: channels of the cycle, channels[i] is from nodes[i] to nodes[(i + 1) % len(nodes)]
    :ivar opaqueSlots: number of slots of opaque buffers already present on the cycle
    :ivar latency: sum of latencies of other operations on the cycle
    :ivar isCombinational: True if there is no opaque buffer on the cycle
        (such cycle would be synthesized as a combinational loop)
    """

    def __init__(self, nodes: List[HsNetNode], channels: List[HsChannel], opaqueSlots: int, latency: int):
        self.nodes = nodes
        self.channels = channels
        self.opaqueSlots = opaqueSlots
        self.latency = latency
        self.isCombinational = opaqueSlots == 0

    @property
    def sequentialElements(self) -> int:
        return self.opaqueSlots + self.latency

    @property
    def rate(self) -> Optional[float]:
        """
        Steady state token issue rate of the cycle (tokens per clock cycle), None if there is no sequential element
        """
        n = self.sequentialElements
        if n == 0:
            return None
        return 1.0 / n

    def __repr__(self):
        return f"<{self.__class__.__name__:s} {[n._id for n in self.nodes]} opaqueSlots={self.opaqueSlots:d} latency={self.latency:d}>"


class HsNetlistAnalysisPassCycles(HsNetlistAnalysisPass):
    """
    Enumerate all elementary cycles in the netlist.

    Parallel channels between the same pair of operations are expanded to separate cycles.

    :ivar cycles: list of cycles sorted by ids of channels
    :ivar sccOfNode: index of strongly connected component for each operation id
    """

    def __init__(self):
        super(HsNetlistAnalysisPassCycles, self).__init__()
        self.cycles: List[HsCycle] = []
        self.sccOfNode: Dict[int, int] = {}

    def isChannelOnCycle(self, ch: HsChannel) -> bool:
        if ch.srcNode == ch.dstNode:
            return True
        scc = self.sccOfNode
        return scc[ch.srcNode] == scc[ch.dstNode]

    @staticmethod
    def _rotateToMinId(cycle: List[int]) -> List[int]:
        i = cycle.index(min(cycle))
        return cycle[i:] + cycle[:i]

    @override
    def runOnHsNetlistImpl(self, netlist: "HsNetlistCtx"):
        g = DiGraph()
        g.add_nodes_from(netlist.nodes.keys())
        parallelChannels: Dict[Tuple[int, int], List[HsChannel]] = {}
        for ch in sorted(netlist.channels.values(), key=lambda ch: ch._id):
            k = (ch.srcNode, ch.dstNode)
            chs = parallelChannels.get(k, None)
            if chs is None:
                parallelChannels[k] = [ch]
                g.add_edge(*k)
            else:
                chs.append(ch)

        for i, scc in enumerate(strongly_connected_components(g)):
            for n in scc:
                self.sccOfNode[n] = i

        platform = netlist.platform
        cycles: List[HsCycle] = []
        for cycle in simple_cycles(g):
            cycle = self._rotateToMinId(list(cycle))
            nodes = [netlist.nodes[n] for n in cycle]
            edgeChannels = [parallelChannels[(cycle[i], cycle[(i + 1) % len(cycle)])]
                            for i in range(len(cycle))]
            opaqueSlots = 0
            latency = 0
            for n in nodes:
                if n.kind is HS_OP_KIND.BUFFER:
                    if n.attrs["bufferType"] is HS_BUFFER_TYPE.OPAQUE and not n.attrs.get("placeholder", False):
                        opaqueSlots += n.attrs["slots"]
                else:
                    latency += platform.getOpRealization(n).latency

            for channels in product(*edgeChannels):
                cycles.append(HsCycle(nodes, list(channels), opaqueSlots, latency))

        cycles.sort(key=lambda c: tuple(ch._id for ch in c.channels))
        self.cycles = cycles
