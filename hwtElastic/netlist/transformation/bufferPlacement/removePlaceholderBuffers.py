from typing import Optional

from hwt.pyUtils.typingFuture import override
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND
from hwtElastic.netlist.transformation.hsNetlistPass import HsNetlistPass
from hwtElastic.preservedAnalysisSet import PreservedAnalysisSet


class HsNetlistPassRemovePlaceholderBuffers(HsNetlistPass):
    """
    Remove buffers which were inserted by the front end only to reserve a position in the circuit.
    """

    def __init__(self, dbgTracer: Optional[DebugTracer]=None):
        self._dbgTracer = dbgTracer if dbgTracer is not None else DebugTracer(None)

    @override
    def runOnHsNetlistImpl(self, netlist: HsNetlistCtx) -> PreservedAnalysisSet:
        toRm = [n for n in netlist.iterNodesOfKind(HS_OP_KIND.BUFFER) if n.attrs.get("placeholder", False)]
        if not toRm:
            return PreservedAnalysisSet.preserveAll()

        with self._dbgTracer.scoped(HsNetlistPassRemovePlaceholderBuffers, None) as dbg:
            for n in sorted(toRm, key=lambda n: n._id):
                dbg.log(("rm", n))
                netlist.removeNode(n)

        return PreservedAnalysisSet.preserveBlockDominators()
