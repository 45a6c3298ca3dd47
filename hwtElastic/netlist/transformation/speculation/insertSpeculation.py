from enum import Enum
from typing import Optional, List

from hwt.pyUtils.typingFuture import override
from hwtElastic.errors import ConfigurationError, RegionLegalityError
from hwtElastic.netlist.analysis.combDelay import HsNetlistAnalysisPassCombDelay
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_OP_KIND_isSpeculation
from hwtElastic.netlist.transformation.hsNetlistPass import HsNetlistPass
from hwtElastic.netlist.transformation.speculation.autoPlacement import findSpeculationPositions
from hwtElastic.netlist.transformation.speculation.positions import HsSpeculationPositions
from hwtElastic.netlist.transformation.speculation.regionLegality import checkSpeculativeRegionLegality
from hwtElastic.preservedAnalysisSet import PreservedAnalysisSet

_EPS = 1e-6


class HS_SPECULATION_MODE(Enum):
    """
    :cvar EXPLICIT: positions of speculator, saves and commits are specified by user
    :cvar AUTOMATIC: only the position of speculator is specified, saves and commits are derived
    """
    EXPLICIT, AUTOMATIC = range(2)

    @classmethod
    def fromStr(cls, s: str) -> "HS_SPECULATION_MODE":
        return cls[s.upper()]


class HsNetlistPassInsertSpeculation(HsNetlistPass):
    """
    Insert speculator, save and commit operations on channels of the circuit.

    All speculation operations already present in the circuit are removed first, the region is always planned from scratch.
    The legality of the region is checked before any operation is inserted.
    If the circuit met the clock period before the insertion it has to meet it also with the inserted operations.

    Relation of the operations is stored in attributes:
    speculator.attrs["saves"], speculator.attrs["commits"] are lists of ids of save/commit operations,
    speculator.attrs["speculatedNode"] is an id of the operation which produces the speculated value,
    save.attrs["speculator"] and commit.attrs["speculator"] are ids of the speculator.

    :ivar speculator: the inserted speculator operation (after successful run)
    """

    def __init__(self, positions: HsSpeculationPositions, mode: HS_SPECULATION_MODE,
                 dbgTracer: Optional[DebugTracer]=None):
        self.positions = positions
        self.mode = mode
        self._dbgTracer = dbgTracer if dbgTracer is not None else DebugTracer(None)
        self.speculator: Optional[HsNetNode] = None

    @staticmethod
    def removeSpeculationOps(netlist: HsNetlistCtx, dbg: DebugTracer):
        for n in sorted((n for n in netlist.nodes.values() if HS_OP_KIND_isSpeculation(n.kind)), key=lambda n: n._id):
            dbg.log(("rm", n))
            netlist.removeNode(n)

    def _insert(self, netlist: HsNetlistCtx, specCh: HsChannel, saves: List[HsChannel], commits: List[HsChannel]):
        b = netlist.builder
        dbg = self._dbgTracer
        specNode = specCh.getSrcNode()
        speculator = b.buildSpeculationOp(HS_OP_KIND.SPECULATOR, specCh._dtype, specNode.block)
        saveOps = []
        for ch in saves:
            saveOps.append(b.buildSpeculationOp(HS_OP_KIND.SAVE, ch._dtype, ch.getSrcNode().block,
                                                attrs={"speculator": speculator._id}))
        commitOps = []
        for ch in commits:
            commitOps.append(b.buildSpeculationOp(HS_OP_KIND.COMMIT, ch._dtype, ch.getSrcNode().block,
                                                  attrs={"speculator": speculator._id}))

        netlist.setNodeAttr(speculator, "saves", [n._id for n in saveOps])
        netlist.setNodeAttr(speculator, "commits", [n._id for n in commitOps])
        netlist.setNodeAttr(speculator, "speculatedNode", specNode._id)

        for ch, n in zip(commits, commitOps):
            dbg.log(("commit", ch.getPrettyName()))
            netlist.insertNodeOnChannel(ch, n)
        for ch, n in zip(saves, saveOps):
            dbg.log(("save", ch.getPrettyName()))
            netlist.insertNodeOnChannel(ch, n)
        dbg.log(("speculator", specCh.getPrettyName()))
        netlist.insertNodeOnChannel(specCh, speculator)
        return speculator

    @override
    def runOnHsNetlistImpl(self, netlist: HsNetlistCtx) -> PreservedAnalysisSet:
        positions = self.positions
        specRef = positions.speculator.operation
        with self._dbgTracer.scoped(HsNetlistPassInsertSpeculation, None) as dbg:
            self.removeSpeculationOps(netlist, dbg)
            if self.mode is HS_SPECULATION_MODE.AUTOMATIC:
                if positions.saves or positions.commits:
                    raise ConfigurationError("Saves and commits must not be specified in automatic speculation mode", specRef)
                specCh, _, _ = positions.resolve(netlist)
                saves, commits = findSpeculationPositions(netlist, specCh, specRef, dbg)
                ids = set(ch._id for ch in saves)
                if specCh._id in ids or any(ch._id in ids or ch._id == specCh._id for ch in commits):
                    raise RegionLegalityError("Derived speculation positions overlap", specRef)
            elif self.mode is HS_SPECULATION_MODE.EXPLICIT:
                specCh, saves, commits = positions.resolve(netlist)
            else:
                raise ConfigurationError("Invalid speculation mode", repr(self.mode))

            checkSpeculativeRegionLegality(netlist, specCh, saves, commits, specRef, dbg)
            clkPeriod = netlist.platform.clkPeriod + _EPS
            timingMet = not netlist.getAnalysis(HsNetlistAnalysisPassCombDelay).getTimingViolations(clkPeriod)
            speculator = self._insert(netlist, specCh, saves, commits)
            if timingMet:
                violations = netlist.getAnalysis(HsNetlistAnalysisPassCombDelay).getTimingViolations(clkPeriod)
                if violations:
                    for ch in violations:
                        dbg.log(("timing violated", ch.getPrettyName(), ch.combDelay))
                    raise RegionLegalityError("Speculation operations do not fit into clock period", specRef,
                                              [ch.getPrettyName() for ch in violations])
            self.speculator = speculator

        return PreservedAnalysisSet.preserveBlockDominators()
