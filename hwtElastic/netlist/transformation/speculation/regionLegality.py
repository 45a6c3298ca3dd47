from typing import List, Set, Sequence

from hwtElastic.errors import RegionLegalityError
from hwtElastic.netlist.analysis.blockDominators import HsNetlistAnalysisPassBlockDominators
from hwtElastic.netlist.analysis.reachability import HsNetlistAnalysisPassReachability
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND_isExternallyObservable


def walkSpeculativeRegion(specCh: HsChannel, commitChannels: Set[int], specRef) -> Set[int]:
    """
    Walk all channels reachable from the speculator channel, stopping on commit channels
    and on channels leading back to the speculated operation.

    :param specRef: reference of the speculator for error messages
    :return: ids of visited channels
    :raise RegionLegalityError: if the speculative value may leave the region without a commit
    """
    specNode = specCh.getSrcNode()
    specDst = specCh.getDstNode()
    if specDst is specNode or HS_OP_KIND_isExternallyObservable(specDst.kind):
        raise RegionLegalityError(f"Speculator on {specCh.getPrettyName():s} would leave the region immediately", specRef)
    visited: Set[int] = {specCh._id}
    toSearch: List[HsChannel] = list(specDst.iterOutputChannels())
    seenNodes = {specCh.dstNode}
    while toSearch:
        ch = toSearch.pop()
        if ch._id in visited:
            continue
        visited.add(ch._id)
        if ch._id in commitChannels:
            continue

        dst = ch.getDstNode()
        if dst is specNode:
            raise RegionLegalityError(f"Speculative value reaches the speculated operation {dst.getPrettyName():s} without commit"
                                      f" (channel {ch.getPrettyName():s})", specRef)
        if HS_OP_KIND_isExternallyObservable(dst.kind):
            raise RegionLegalityError(f"Speculative value may be observed externally in {dst.getPrettyName():s} without commit"
                                      f" (channel {ch.getPrettyName():s})", specRef)
        if dst._id in seenNodes:
            continue
        seenNodes.add(dst._id)
        toSearch.extend(dst.iterOutputChannels())

    return visited


def checkSpeculativeRegionLegality(netlist: HsNetlistCtx, specCh: HsChannel,
                                   saveChannels: Sequence[HsChannel],
                                   commitChannels: Sequence[HsChannel],
                                   specRef,
                                   dbg: DebugTracer):
    """
    Check that the speculative region is single-entry/single-exit:

    * the speculator dominates every save (block of the speculated operation dominates block of the save producer
      and the save is reachable from the speculator)
    * every path from the speculator passes through a commit before it reaches an externally observable operation
      or the speculated operation itself
    * every commit and every save is inside of the region

    :note: This works on the circuit before the insertion of speculation operations, positions are specified as channels.
    :raise RegionLegalityError: if the region is illegal
    """
    with dbg.scoped(checkSpeculativeRegionLegality, specCh.getSrcNode()):
        if not commitChannels:
            raise RegionLegalityError("Speculative region must be delimited by at least one commit", specRef)

        doms: HsNetlistAnalysisPassBlockDominators = netlist.getAnalysis(HsNetlistAnalysisPassBlockDominators)
        reach: HsNetlistAnalysisPassReachability = netlist.getAnalysis(HsNetlistAnalysisPassReachability)
        specNode = specCh.getSrcNode()
        specDst = specCh.getDstNode()
        for ch in saveChannels:
            saveProducer = ch.getSrcNode()
            if not doms.blockDominates(specNode.block, saveProducer.block) or not reach.isReachableFrom(specDst, saveProducer):
                raise RegionLegalityError(f"Speculator does not dominate save on {ch.getPrettyName():s}", specRef)

        commitIds = set(ch._id for ch in commitChannels)
        visited = walkSpeculativeRegion(specCh, commitIds, specRef)
        dbg.log(("region channels", len(visited)))
        for ch in commitChannels:
            if ch._id not in visited:
                raise RegionLegalityError(f"Commit on {ch.getPrettyName():s} is not reachable from speculator", specRef)
        for ch in saveChannels:
            if ch._id not in visited:
                raise RegionLegalityError(f"Save on {ch.getPrettyName():s} is not inside of the speculative region", specRef)
