from collections import deque
from typing import List, Dict, Tuple, Set

from hwtElastic.errors import RegionLegalityError
from hwtElastic.netlist.analysis.blockDominators import HsNetlistAnalysisPassBlockDominators
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND_isExternallyObservable


def _findSaveCandidates(netlist: HsNetlistCtx, specCh: HsChannel) -> Tuple[List[HsChannel], List[HsChannel]]:
    """
    Search channels reachable from the speculator until the first channel which crosses a basic block boundary
    or which is a loop back-edge. Such channels are save candidates.
    Channels which lead to externally observable operations (or back to the speculated operation)
    before such crossing are early exits and they require commit.

    :return: tuple (save channels, early exit channels) both sorted by id
    """
    doms: HsNetlistAnalysisPassBlockDominators = netlist.getAnalysis(HsNetlistAnalysisPassBlockDominators)
    specNode = specCh.getSrcNode()
    saves: Dict[int, HsChannel] = {}
    exits: Dict[int, HsChannel] = {}
    seenNodes = {specCh.dstNode}
    toSearch = deque(specCh.getDstNode().iterOutputChannels())
    while toSearch:
        ch: HsChannel = toSearch.popleft()
        src = ch.getSrcNode()
        dst = ch.getDstNode()
        if dst is specNode or HS_OP_KIND_isExternallyObservable(dst.kind):
            exits[ch._id] = ch
        elif src.block != dst.block or doms.isLoopBackEdge(ch):
            saves[ch._id] = ch
        elif dst._id not in seenNodes:
            seenNodes.add(dst._id)
            toSearch.extend(dst.iterOutputChannels())

    return [saves[k] for k in sorted(saves)], [exits[k] for k in sorted(exits)]


def _bfsDistances(start: HsNetNode, stop: HsNetNode) -> Dict[int, int]:
    dist = {start._id: 0}
    toSearch = deque((start,))
    while toSearch:
        n = toSearch.popleft()
        d = dist[n._id] + 1
        for suc in n.iterSuccessors():
            if suc is stop or suc._id in dist:
                continue
            dist[suc._id] = d
            toSearch.append(suc)
    return dist


def _findReconvergence(netlist: HsNetlistCtx, specNode: HsNetNode, saves: List[HsChannel]) -> HsNetNode:
    """
    Find the operation reachable from all saves which is closest to them.
    Candidates are ordered by maximum BFS distance from save, then by sum of distances, then by id.
    """
    dists = [_bfsDistances(s.getDstNode(), specNode) for s in saves]
    common: Set[int] = set(dists[0].keys())
    for d in dists[1:]:
        common.intersection_update(d.keys())
    if not common:
        return None
    best = min(common, key=lambda nId: (max(d[nId] for d in dists), sum(d[nId] for d in dists), nId))
    return netlist.nodes[best]


def _findCommits(specCh: HsChannel, reconvergence: HsNetNode) -> List[HsChannel]:
    """
    Walk the region from the speculator and collect channels where the speculative value leaves the region.
    The region ends at the reconvergence operation (commits on its outputs, or on its inputs if it is externally observable),
    on externally observable operations and on the speculated operation itself.
    """
    specNode = specCh.getSrcNode()
    commits: Dict[int, HsChannel] = {}
    seenNodes = {specCh.dstNode}
    toSearch = deque(specCh.getDstNode().iterOutputChannels())
    while toSearch:
        ch: HsChannel = toSearch.popleft()
        dst = ch.getDstNode()
        if dst is specNode or HS_OP_KIND_isExternallyObservable(dst.kind):
            commits[ch._id] = ch
        elif dst._id in seenNodes:
            continue
        elif dst is reconvergence:
            seenNodes.add(dst._id)
            for o in dst.iterOutputChannels():
                commits[o._id] = o
        else:
            seenNodes.add(dst._id)
            toSearch.extend(dst.iterOutputChannels())

    return [commits[k] for k in sorted(commits)]


def findSpeculationPositions(netlist: HsNetlistCtx, specCh: HsChannel, specRef,
                             dbg: DebugTracer) -> Tuple[List[HsChannel], List[HsChannel]]:
    """
    Derive save and commit positions for the speculator on specCh.

    :return: tuple (save channels, commit channels)
    :raise RegionLegalityError: if there is no legal region
    """
    specNode = specCh.getSrcNode()
    with dbg.scoped(findSpeculationPositions, specNode):
        saves, earlyExits = _findSaveCandidates(netlist, specCh)
        dbg.log(("save candidates", [ch.getPrettyName() for ch in saves]))
        dbg.log(("early exits", [ch.getPrettyName() for ch in earlyExits]))
        if not saves:
            raise RegionLegalityError("No save position found (no basic block boundary or loop back-edge reachable from speculator)", specRef)

        r = _findReconvergence(netlist, specNode, saves)
        if r is None:
            raise RegionLegalityError("Paths from saves do not reconverge", specRef)
        dbg.log(("reconvergence", r))

        commits = _findCommits(specCh, r)
        dbg.log(("commits", [ch.getPrettyName() for ch in commits]))
        if not commits:
            raise RegionLegalityError("No commit position found", specRef)

        return saves, commits
