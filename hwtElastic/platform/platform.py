from io import StringIO
from pathlib import Path
import sys
from typing import Optional, Union, Set, Dict, Sequence

from hwt.synthesizer.dummyPlatform import DummyPlatform
from hwtElastic.errors import ConfigurationError
from hwtElastic.netlist.analysis.combDelay import HsNetlistAnalysisPassCombDelay
from hwtElastic.netlist.analysis.consistencyCheck import HsNetlistPassConsistencyCheck
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_BUFFER_TYPE
from hwtElastic.netlist.transformation.bufferPlacement.bufferPlacement import HsNetlistPassBufferPlacement, \
    HsBufferPlacementResult
from hwtElastic.netlist.transformation.bufferPlacement.manualBuffers import HsBufferPosition, HsNetlistPassInsertBuffers
from hwtElastic.netlist.transformation.bufferPlacement.milp import MilpSolver, ScipyMilpSolver
from hwtElastic.netlist.transformation.bufferPlacement.removePlaceholderBuffers import HsNetlistPassRemovePlaceholderBuffers
from hwtElastic.netlist.transformation.speculation.insertSpeculation import HsNetlistPassInsertSpeculation, \
    HS_SPECULATION_MODE
from hwtElastic.netlist.transformation.speculation.markSpeculativeRegion import HsNetlistPassMarkSpeculativeRegion
from hwtElastic.netlist.transformation.speculation.positions import HsSpeculationPositions
from hwtElastic.platform.debugBundle import HsDebugBundle, DebugId
from hwtElastic.platform.fileUtils import outputFileGetter
from hwtElastic.platform.opRealizationMeta import OpRealizationMeta, EMPTY_OP_REALIZATION

OpTimings = Dict[str, OpRealizationMeta]


class DefaultHsPlatform(DummyPlatform):
    """
    A base platform which is a container of target config and compilation pipeline configuration.

    :ivar clkPeriod: clock period (ns)
    :ivar targetThroughput: minimal required throughput of every cycle in the circuit (tokens per clock cycle, (0, 1])
    :ivar opTimings: timing of operations, the key is an operator name for OPERATOR kind and lower-case kind name
        for other kinds, "default" is used for missing keys
    :ivar solverTimeLimit: time limit for buffer placement solver (s), None for unlimited
    :ivar maxSlotsPerChannel: maximum number of slots of a buffer inserted by buffer placement
    :ivar speculationMode: how positions of saves and commits are resolved
    :ivar milpSolver: solver used for buffer placement
    """

    def __init__(self, clkPeriod: float,
                 targetThroughput: float,
                 opTimings: OpTimings,
                 solverTimeLimit: Optional[float]=60.0,
                 maxSlotsPerChannel: int=8,
                 speculationMode: HS_SPECULATION_MODE=HS_SPECULATION_MODE.EXPLICIT,
                 debugDir: Optional[Union[str, Path]]=None,
                 debugFilter: Optional[Set[DebugId]]=HsDebugBundle.DEFAULT,
                 milpSolver: Optional[MilpSolver]=None):
        DummyPlatform.__init__(self)
        if isinstance(clkPeriod, bool) or not isinstance(clkPeriod, (int, float)) or not clkPeriod > 0:
            raise ConfigurationError(f"clkPeriod must be > 0, got {clkPeriod!r}", "clkPeriod")
        if isinstance(targetThroughput, bool) or not isinstance(targetThroughput, (int, float)) or not (0 < targetThroughput <= 1):
            raise ConfigurationError(f"targetThroughput must be in (0, 1], got {targetThroughput!r}", "targetThroughput")
        if isinstance(maxSlotsPerChannel, bool) or not isinstance(maxSlotsPerChannel, int) or maxSlotsPerChannel < 1:
            raise ConfigurationError(f"maxSlotsPerChannel must be >= 1, got {maxSlotsPerChannel!r}", "maxSlotsPerChannel")
        if solverTimeLimit is not None and not solverTimeLimit > 0:
            raise ConfigurationError(f"solverTimeLimit must be > 0 or None, got {solverTimeLimit!r}", "solverTimeLimit")
        if not isinstance(speculationMode, HS_SPECULATION_MODE):
            raise ConfigurationError(f"Invalid speculation mode {speculationMode!r}", "speculationMode")
        for k, v in opTimings.items():
            if not isinstance(v, OpRealizationMeta):
                raise ConfigurationError(f"Timing of {k} must be OpRealizationMeta, got {v!r}", k)

        self.clkPeriod = clkPeriod
        self.targetThroughput = targetThroughput
        self.opTimings: OpTimings = dict(opTimings)
        self.solverTimeLimit = solverTimeLimit
        self.maxSlotsPerChannel = maxSlotsPerChannel
        self.speculationMode = speculationMode
        self.milpSolver = milpSolver if milpSolver is not None else ScipyMilpSolver()
        self._debug = HsDebugBundle(debugDir, debugFilter)

    def getTiming(self, key: str) -> OpRealizationMeta:
        t = self.opTimings.get(key, None)
        if t is None:
            t = self.opTimings.get("default", None)
            if t is None:
                raise ConfigurationError(f"Missing timing for \"{key:s}\" and there is no \"default\"", key)
        return t

    def getBufferDelay(self) -> float:
        return self.getTiming("buffer").delay

    def getOpRealization(self, n: HsNetNode) -> OpRealizationMeta:
        if n.kind is HS_OP_KIND.BUFFER:
            if n.attrs.get("placeholder", False):
                return EMPTY_OP_REALIZATION
            delay = self.getBufferDelay()
            if n.attrs["bufferType"] is HS_BUFFER_TYPE.OPAQUE:
                return OpRealizationMeta(delay, n.attrs["slots"])
            else:
                return OpRealizationMeta(delay, 0)

        return self.getTiming(n.getTimingKey())

    def getPassManagerDebugLogFile(self) -> Optional[StringIO]:
        if self._debug.isActivated(HsDebugBundle.DBG_passExec):
            return sys.stderr
        return None

    def _getDebugTracer(self, scopeName: str, dbgId: DebugId):
        if self._debug.isActivated(dbgId):
            traceFile, doCloseTrace = outputFileGetter(self._debug.dir, dbgId[1])(scopeName)
            dbgTracer = DebugTracer(traceFile)
        else:
            dbgTracer = DebugTracer(None)
            doCloseTrace = False
        return dbgTracer, doCloseTrace

    def runBufferPlacement(self, netlist: HsNetlistCtx) -> HsBufferPlacementResult:
        dbgTracer, doCloseTrace = self._getDebugTracer(netlist.label, HsDebugBundle.DBG_1_bufferPlacementTrace)
        milpDump, doCloseMilp = None, False
        if self._debug.isActivated(HsDebugBundle.DBG_1_milp):
            milpDump, doCloseMilp = outputFileGetter(self._debug.dir, HsDebugBundle.DBG_1_milp[1])(netlist.label)
        try:
            p = HsNetlistPassBufferPlacement(dbgTracer, milpDump)
            p.runOnHsNetlist(netlist)
            return p.result
        finally:
            if doCloseTrace:
                dbgTracer._out.close()
            if doCloseMilp:
                milpDump.close()

    def runSpeculation(self, netlist: HsNetlistCtx, speculationPositions: HsSpeculationPositions):
        dbgTracer, doCloseTrace = self._getDebugTracer(netlist.label, HsDebugBundle.DBG_3_speculationTrace)
        try:
            HsNetlistPassInsertSpeculation(speculationPositions, self.speculationMode, dbgTracer).runOnHsNetlist(netlist)
            HsNetlistPassMarkSpeculativeRegion(dbgTracer).runOnHsNetlist(netlist)
        finally:
            if doCloseTrace:
                dbgTracer._out.close()

    def runHsNetlistPasses(self, netlist: HsNetlistCtx,
                           bufferPositions: Optional[Sequence[HsBufferPosition]]=None,
                           speculationPositions: Optional[HsSpeculationPositions]=None) -> HsBufferPlacementResult:
        """
        Run the whole pipeline: consistency check, removal of placeholder buffers, timing analysis,
        buffer placement, manual buffers, speculation and marking of speculative regions.
        Each step is atomic, if it fails the netlist stays as it was before the step.
        """
        DBG = self._debug.runDebugIfEnabled
        DBG(HsDebugBundle.DBG_0_input, (netlist,))
        DBG(HsDebugBundle.DBG_0_inputTxt, (netlist,))
        HsNetlistPassConsistencyCheck().runOnHsNetlist(netlist)

        HsNetlistPassRemovePlaceholderBuffers().runOnHsNetlist(netlist)
        netlist.getAnalysis(HsNetlistAnalysisPassCombDelay)
        res = self.runBufferPlacement(netlist)
        if bufferPositions:
            HsNetlistPassInsertBuffers(bufferPositions).runOnHsNetlist(netlist)
        DBG(HsDebugBundle.DBG_2_buffered, (netlist,))
        DBG(HsDebugBundle.DBG_2_bufferedTxt, (netlist,))

        if speculationPositions is not None:
            self.runSpeculation(netlist, speculationPositions)

        netlist.getAnalysis(HsNetlistAnalysisPassCombDelay)
        HsNetlistPassConsistencyCheck().runOnHsNetlist(netlist)
        DBG(HsDebugBundle.DBG_4_final, (netlist,))
        DBG(HsDebugBundle.DBG_4_finalTxt, (netlist,))
        return res
