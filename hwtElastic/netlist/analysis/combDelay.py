from math import inf
from typing import Dict, List

from networkx.algorithms.components.strongly_connected import condensation
from networkx.algorithms.dag import topological_sort
from networkx.classes.digraph import DiGraph

from hwt.pyUtils.typingFuture import override
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_BUFFER_TYPE


def HsNetNode_isRegister(n: HsNetNode, latency: int) -> bool:
    """
    :return: True if the operation resets the accumulation of combinational delay
    """
    if n.kind is HS_OP_KIND.BUFFER:
        return n.attrs["bufferType"] is HS_BUFFER_TYPE.OPAQUE and not n.attrs.get("placeholder", False)
    return latency > 0


class HsNetlistAnalysisPassCombDelay(HsNetlistAnalysisPass):
    """
    Estimate the combinational delay of every channel.

    The delay of a channel is the time when the data on the channel is stable relative to the clock edge.
    It is the sum of delays of operations on the longest path from the closest register (opaque buffer or operation with latency > 0).
    The register itself contributes only with its own delay (clock to output).
    The delay is infinite for channels in or after a combinational loop.

    :ivar arrival: output arrival time for each operation id
    :ivar channelDelay: delay for each channel id
    """

    def __init__(self):
        super(HsNetlistAnalysisPassCombDelay, self).__init__()
        self.arrival: Dict[int, float] = {}
        self.channelDelay: Dict[int, float] = {}

    def getTimingViolations(self, clkPeriod: float) -> List[HsChannel]:
        return [self._netlist.channels[chId]
                for chId, d in sorted(self.channelDelay.items())
                if d > clkPeriod]

    @override
    def runOnHsNetlistImpl(self, netlist: "HsNetlistCtx"):
        self._netlist = netlist
        platform = netlist.platform
        timing = {nId: platform.getOpRealization(n) for nId, n in netlist.nodes.items()}
        isReg = {nId: HsNetNode_isRegister(n, timing[nId].latency) for nId, n in netlist.nodes.items()}

        # combinational dependencies only, the edges to registers are cut
        g = DiGraph()
        g.add_nodes_from(netlist.nodes.keys())
        for ch in netlist.channels.values():
            if not isReg[ch.dstNode]:
                g.add_edge(ch.srcNode, ch.dstNode)

        arrival = self.arrival
        dag = condensation(g)
        for sccI in topological_sort(dag):
            members = dag.nodes[sccI]["members"]
            if len(members) > 1 or any(g.has_edge(m, m) for m in members):
                for m in members:
                    arrival[m] = inf
                continue

            nId, = members
            d = timing[nId].delay
            if not isReg[nId]:
                n = netlist.nodes[nId]
                inArrivals = [arrival[ch.srcNode] for ch in n.iterInputChannels()]
                if inArrivals:
                    d += max(inArrivals)
            arrival[nId] = d

        for chId, ch in netlist.channels.items():
            d = arrival[ch.srcNode]
            self.channelDelay[chId] = d
            netlist.setChannelCombDelay(ch, d)
