from collections import deque
from typing import Optional, Set

from hwt.pyUtils.setList import SetList
from hwt.pyUtils.typingFuture import override
from hwtElastic.errors import InternalConsistencyError
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_OP_KIND_isExternallyObservable
from hwtElastic.netlist.transformation.hsNetlistPass import HsNetlistPass
from hwtElastic.preservedAnalysisSet import PreservedAnalysisSet


class HsNetlistPassMarkSpeculativeRegion(HsNetlistPass):
    """
    Set :attr:`HsNetNode.isSpeculativeRegionMember` for every operation of every speculative region.

    The region of a speculator is the speculated operation, the speculator itself and everything reachable
    from the speculator and from its saves before a commit of this speculator (commits are also members).
    All markers are reset first, the result depends only on the structure of the circuit.
    A path from a save may also end in a sink (the token is discarded and it is not externally observable),
    a save only has to reach at least one commit.

    :raise InternalConsistencyError: if a walk reaches an externally observable operation or if a save does not reach any commit
        (the region was validated before insertion, this is a bug)
    """

    def __init__(self, dbgTracer: Optional[DebugTracer]=None):
        self._dbgTracer = dbgTracer if dbgTracer is not None else DebugTracer(None)

    @staticmethod
    def _walk(start: HsNetNode, anchor: HsNetNode, commits: Set[int], marked: Set[int]) -> bool:
        """
        :return: True if any commit was reached
        """
        commitReached = False
        found: SetList[HsNetNode] = SetList()
        found.append(start)
        toSearch = deque(start.iterSuccessors())
        while toSearch:
            n: HsNetNode = toSearch.popleft()
            if not found.append(n):
                # already visited
                continue
            if n._id in commits:
                marked.add(n._id)
                commitReached = True
                continue
            elif n is anchor:
                continue
            elif HS_OP_KIND_isExternallyObservable(n.kind):
                raise InternalConsistencyError("Speculative region reaches externally observable operation without commit", start, n)
            marked.add(n._id)
            toSearch.extend(n.iterSuccessors())

        return commitReached

    @override
    def runOnHsNetlistImpl(self, netlist: HsNetlistCtx) -> PreservedAnalysisSet:
        for n in netlist.nodes.values():
            netlist.setSpeculativeRegionMember(n, False)

        with self._dbgTracer.scoped(HsNetlistPassMarkSpeculativeRegion, None) as dbg:
            marked: Set[int] = set()
            for spec in sorted(netlist.iterNodesOfKind(HS_OP_KIND.SPECULATOR), key=lambda n: n._id):
                anchor = netlist.nodes.get(spec.attrs.get("speculatedNode", None), None)
                if anchor is None:
                    raise InternalConsistencyError("Speculator without speculated operation", spec)
                commits = set(spec.attrs["commits"])
                marked.add(anchor._id)
                marked.add(spec._id)
                self._walk(spec, anchor, commits, marked)
                for saveId in spec.attrs["saves"]:
                    save = netlist.nodes.get(saveId, None)
                    if save is None:
                        raise InternalConsistencyError("Save of speculator missing in netlist", spec, saveId)
                    marked.add(saveId)
                    if not self._walk(save, anchor, commits, marked):
                        raise InternalConsistencyError("No path from save reaches a commit", spec, save)
                dbg.log(("region", spec, "members", len(marked)))

            for nId in sorted(marked):
                netlist.setSpeculativeRegionMember(netlist.nodes[nId], True)

        return PreservedAnalysisSet.preserveAll()
