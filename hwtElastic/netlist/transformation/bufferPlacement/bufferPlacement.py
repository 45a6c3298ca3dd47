from io import StringIO
from math import floor
from typing import Dict, List, Optional, Tuple

from hwt.pyUtils.typingFuture import override
from hwtElastic.errors import StructuralInfeasibilityError, SolverBudgetExceededError, \
    InternalConsistencyError, InfeasibilityError
from hwtElastic.netlist.analysis.combDelay import HsNetlistAnalysisPassCombDelay, HsNetNode_isRegister
from hwtElastic.netlist.analysis.cycles import HsNetlistAnalysisPassCycles, HsCycle
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.opKind import HS_BUFFER_TYPE
from hwtElastic.netlist.transformation.bufferPlacement.milp import MilpRequest, MILP_STATUS, MilpResponse
from hwtElastic.netlist.transformation.hsNetlistPass import HsNetlistPass
from hwtElastic.preservedAnalysisSet import PreservedAnalysisSet

# tolerance for comparison of float results of the solver
_EPS = 1e-6


class HsBufferPlacementResult():
    """
    :ivar slots: slot count and buffer type for each channel (specified by producer id and output index)
        of the original circuit which received a buffer
    :ivar cycleRates: throughput of each cycle after buffer placement (cycle nodes ids, rate)
    :ivar objective: total number of inserted slots
    """

    def __init__(self):
        self.slots: Dict[Tuple[int, int], Tuple[int, HS_BUFFER_TYPE]] = {}
        self.cycleRates: List[Tuple[Tuple[int, ...], Optional[float]]] = []
        self.objective: Optional[float] = None

    def __repr__(self):
        return f"<{self.__class__.__name__:s} objective={self.objective} slots={self.slots}>"


class _ChannelVars():
    """
    Variables of the buffer placement program for a single channel

    :ivar n: total number of slots
    :ivar o: 1 if the buffer is opaque
    :ivar k: number of opaque slots (n if o else 0)
    :ivar p: 1 if there is any slot
    :ivar t: arrival time at the input of the consumer
    """

    def __init__(self, ch: HsChannel, n: int, o: int, k: int, p: int, t: int):
        self.ch = ch
        self.n = n
        self.o = o
        self.k = k
        self.p = p
        self.t = t


class HsNetlistPassBufferPlacement(HsNetlistPass):
    """
    Insert buffers on channels so that:

    * every cycle contains at least one opaque slot (no combinational loop)
    * combinational delay between registers does not exceed clock period
    * every cycle has throughput >= target throughput

    while minimizing the total number of slots.

    The problem is formulated as a mixed integer linear program:

    .. code-block:: text

        per channel c=(u -> v): n_c in [0, S] int, o_c bin, k_c in [0, S] int, p_c bin, t_c in [0, CP]
        per operation v: a_v in [0, CP]

        k_c <= n_c, k_c <= S*o_c, k_c >= o_c, k_c >= n_c - S*(1 - o_c)    # k_c = n_c if o_c else 0
        n_c <= S*p_c, p_c <= n_c                                         # p_c = n_c > 0
        t_c >= a_u + D_buf*(p_c - o_c) - CP*o_c                          # transparent buffer adds delay
        t_c >= D_buf*o_c                                                 # opaque buffer starts new path
        a_v >= d_v                                   if v is register
        a_v >= d_v + t_c for each input c of v       otherwise

        sum(k_c for c in C) >= 1                                          for each cycle C without opaque buffer
        sum(k_c for c in C) + opaque(C) + latency(C) <= floor(1/T)        for each cycle C

        minimize sum(n_c)

    The throughput of cycle C is 1/N_C where N_C is the number of sequential elements on it,
    the requirement 1/N_C >= T is linearized as N_C <= floor(1/T).

    :note: The pass is atomic, if the solver does not find a solution the netlist is not modified.
    :ivar result: result of the last run
    """

    def __init__(self, dbgTracer: Optional[DebugTracer]=None, milpDump: Optional[StringIO]=None):
        self._dbgTracer = dbgTracer if dbgTracer is not None else DebugTracer(None)
        self._milpDump = milpDump
        self.result: Optional[HsBufferPlacementResult] = None

    def _buildProgram(self, netlist: HsNetlistCtx, cycles: List[HsCycle]) -> Tuple[MilpRequest, Dict[int, _ChannelVars]]:
        platform = netlist.platform
        CP = platform.clkPeriod
        S = platform.maxSlotsPerChannel
        dBuf = platform.getBufferDelay()
        maxSeq = floor(1.0 / platform.targetThroughput + 1e-9)

        req = MilpRequest(f"bufferPlacement_{netlist.label:s}", timeLimit=platform.solverTimeLimit)
        chVars: Dict[int, _ChannelVars] = {}
        for chId in sorted(netlist.channels.keys()):
            ch = netlist.channels[chId]
            pref = f"c{chId:d}"
            v = _ChannelVars(
                ch,
                req.addVar(f"{pref:s}_n", 0, S, True),
                req.addBinVar(f"{pref:s}_o"),
                req.addVar(f"{pref:s}_k", 0, S, True),
                req.addBinVar(f"{pref:s}_p"),
                req.addVar(f"{pref:s}_t", 0.0, CP),
            )
            chVars[chId] = v
            req.addConstraint(f"{pref:s}_k_le_n", {v.k: 1, v.n: -1}, ub=0)
            req.addConstraint(f"{pref:s}_k_le_So", {v.k: 1, v.o: -S}, ub=0)
            req.addConstraint(f"{pref:s}_k_ge_o", {v.k: 1, v.o: -1}, lb=0)
            req.addConstraint(f"{pref:s}_k_ge_n_if_o", {v.k: 1, v.n: -1, v.o: -S}, lb=-S)
            req.addConstraint(f"{pref:s}_n_le_Sp", {v.n: 1, v.p: -S}, ub=0)
            req.addConstraint(f"{pref:s}_p_le_n", {v.p: 1, v.n: -1}, ub=0)
            req.addToObjective(v.n, 1.0)

        opArrival: Dict[int, int] = {}
        for nId in sorted(netlist.nodes.keys()):
            n = netlist.nodes[nId]
            timing = platform.getOpRealization(n)
            a = req.addVar(f"a{nId:d}", 0.0, CP)
            opArrival[nId] = a
            if HsNetNode_isRegister(n, timing.latency):
                req.addConstraint(f"a{nId:d}_reg", {a: 1}, lb=timing.delay)
            else:
                inputs = list(n.iterInputChannels())
                if inputs:
                    for ch in inputs:
                        req.addConstraint(f"a{nId:d}_from_c{ch._id:d}", {a: 1, chVars[ch._id].t: -1}, lb=timing.delay)
                else:
                    req.addConstraint(f"a{nId:d}_src", {a: 1}, lb=timing.delay)

        for v in chVars.values():
            pref = f"c{v.ch._id:d}"
            # t - a_u - dBuf*p + dBuf*o + CP*o >= 0
            coefs = {v.t: 1, opArrival[v.ch.srcNode]: -1, v.p: -dBuf}
            coefs[v.o] = dBuf + CP
            req.addConstraint(f"{pref:s}_t_path", coefs, lb=0)
            req.addConstraint(f"{pref:s}_t_reg", {v.t: 1, v.o: -dBuf}, lb=0)

        for cI, c in enumerate(cycles):
            ks: Dict[int, float] = {}
            for ch in c.channels:
                k = chVars[ch._id].k
                ks[k] = ks.get(k, 0) + 1
            if c.isCombinational:
                req.addConstraint(f"cycle{cI:d}_break", ks, lb=1)
            req.addConstraint(f"cycle{cI:d}_throughput", ks, ub=maxSeq - c.opaqueSlots - c.latency)

        return req, chVars

    def _checkResponse(self, res: MilpResponse):
        s = res.status
        if s is MILP_STATUS.OPTIMAL:
            return
        elif s is MILP_STATUS.TIME_LIMIT:
            raise SolverBudgetExceededError("Buffer placement solver exceeded time limit", res.message)
        elif s in (MILP_STATUS.INFEASIBLE, MILP_STATUS.UNBOUNDED):
            raise StructuralInfeasibilityError(
                "Buffer placement is infeasible (target throughput or clock period unreachable under delay model)", res.message)
        else:
            raise InfeasibilityError("Buffer placement solver failed", res.message)

    def _checkPostconditions(self, netlist: HsNetlistCtx):
        netlist.invalidateAllAnalysis()
        cycles: HsNetlistAnalysisPassCycles = netlist.getAnalysis(HsNetlistAnalysisPassCycles)
        for c in cycles.cycles:
            if c.isCombinational:
                raise InternalConsistencyError("Cycle without opaque buffer after buffer placement", c)

        delays: HsNetlistAnalysisPassCombDelay = netlist.getAnalysis(HsNetlistAnalysisPassCombDelay)
        violations = delays.getTimingViolations(netlist.platform.clkPeriod + _EPS)
        if violations:
            raise InternalConsistencyError("Timing violated after buffer placement", violations)
        return cycles

    @override
    def runOnHsNetlistImpl(self, netlist: HsNetlistCtx) -> PreservedAnalysisSet:
        dbg = self._dbgTracer
        result = HsBufferPlacementResult()
        with dbg.scoped(HsNetlistPassBufferPlacement, None):
            cycles: HsNetlistAnalysisPassCycles = netlist.getAnalysis(HsNetlistAnalysisPassCycles)
            for c in cycles.cycles:
                dbg.log(("cycle", [n._id for n in c.nodes], "opaqueSlots", c.opaqueSlots, "latency", c.latency))

            req, chVars = self._buildProgram(netlist, cycles.cycles)
            if self._milpDump is not None:
                req.dump(self._milpDump)

            res = netlist.platform.milpSolver.solve(req)
            dbg.log(res)
            self._checkResponse(res)

            toInsert: List[Tuple[HsChannel, int, HS_BUFFER_TYPE]] = []
            for v in chVars.values():
                slots = res.getInt(v.n)
                if slots > 0:
                    bufferType = HS_BUFFER_TYPE.OPAQUE if res.getInt(v.o) else HS_BUFFER_TYPE.TRANSPARENT
                    toInsert.append((v.ch, slots, bufferType))

            b = netlist.builder
            for ch, slots, bufferType in toInsert:
                producer = ch.getSrcNode()
                result.slots[(producer._id, ch.out_i)] = (slots, bufferType)
                dbg.log(("insert", bufferType.name, slots, ch.getPrettyName()))
                buff = b.buildUnconnectedBuffer(ch._dtype, slots, bufferType, producer.block)
                netlist.insertNodeOnChannel(ch, buff)

            cycles = self._checkPostconditions(netlist)
            result.cycleRates = [(tuple(n._id for n in c.nodes), c.rate) for c in cycles.cycles]
            result.objective = res.objective

        self.result = result
        return PreservedAnalysisSet.preserveBlockDominators()
