#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from io import StringIO
import unittest

from hwtElastic.errors import StructuralInfeasibilityError, SolverBudgetExceededError
from hwtElastic.netlist.analysis.combDelay import HsNetlistAnalysisPassCombDelay
from hwtElastic.netlist.analysis.cycles import HsNetlistAnalysisPassCycles
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.opKind import HS_BUFFER_TYPE, HS_OP_KIND
from hwtElastic.netlist.transformation.bufferPlacement.bufferPlacement import HsNetlistPassBufferPlacement
from hwtElastic.netlist.transformation.bufferPlacement.milp import MilpSolver, MilpResponse, MILP_STATUS
from tests.netlist.baseHsNetlistTC import BaseHsNetlistTC, HsTestPlatform, netlistSnapshot, u8


class _TimeoutMilpSolver(MilpSolver):

    def solve(self, req):
        return MilpResponse(MILP_STATUS.TIME_LIMIT, None, None, "Time limit reached")


class HsNetlistPassBufferPlacement_TC(BaseHsNetlistTC):

    def _assertCyclesBroken(self, netlist):
        netlist.invalidateAllAnalysis()
        cycles: HsNetlistAnalysisPassCycles = netlist.getAnalysis(HsNetlistAnalysisPassCycles)
        for c in cycles.cycles:
            self.assertTrue(any(n.kind is HS_OP_KIND.BUFFER and n.attrs["bufferType"] is HS_BUFFER_TYPE.OPAQUE
                                for n in c.nodes), c)

    def _assertTimingMet(self, netlist):
        delays: HsNetlistAnalysisPassCombDelay = netlist.getAnalysis(HsNetlistAnalysisPassCombDelay)
        for chId, d in delays.channelDelay.items():
            self.assertLessEqual(d, netlist.platform.clkPeriod + 1e-6, netlist.channels[chId])

    def test_twoOpLoop(self):
        netlist = self._createNetlist(HsTestPlatform(clkPeriod=4.0, targetThroughput=0.5))
        self._buildTwoOpLoop(netlist)
        p = HsNetlistPassBufferPlacement()
        p.runOnHsNetlist(netlist)

        c1 = netlist.getChannelBuffer("x", 0)
        c2 = netlist.getChannelBuffer("y", 0)
        self.assertIn((c1, c2), [
            ((1, HS_BUFFER_TYPE.OPAQUE), (0, None)),
            ((0, None), (1, HS_BUFFER_TYPE.OPAQUE)),
        ])
        self.assertEqual(netlist.getChannelBuffer("entry", 0), (0, None))
        self.assertEqual(netlist.getChannelBuffer("y", 1), (0, None))

        self.assertEqual(len(p.result.slots), 1)
        self.assertAlmostEqual(p.result.objective, 1.0)
        self.assertEqual([r for _, r in p.result.cycleRates], [1.0])
        self._assertCyclesBroken(netlist)
        self._assertTimingMet(netlist)

    def test_twoOpLoop_fullThroughput(self):
        netlist = self._createNetlist(HsTestPlatform(targetThroughput=1.0))
        self._buildTwoOpLoop(netlist)
        p = HsNetlistPassBufferPlacement()
        p.runOnHsNetlist(netlist)
        self.assertEqual(len(list(netlist.iterNodesOfKind(HS_OP_KIND.BUFFER))), 1)
        self._assertCyclesBroken(netlist)

    def test_longCombPath(self):
        netlist = self._createNetlist(HsTestPlatform(clkPeriod=4.0))
        b = netlist.builder
        src = b.buildEntry(u8, name="entry")._outputs[0]
        for i in range(4):
            src = b.buildOperator("add", [src], name=f"add{i:d}")._outputs[0]
        b.buildEnd([src], name="end")

        p = HsNetlistPassBufferPlacement()
        p.runOnHsNetlist(netlist)
        # add 1.5ns, buffer 0.3ns, the only position with a single slot is in the middle
        self.assertEqual(netlist.getChannelBuffer("add1", 0), (1, HS_BUFFER_TYPE.OPAQUE))
        self.assertEqual(len(p.result.slots), 1)
        self.assertEqual(p.result.cycleRates, [])
        self._assertTimingMet(netlist)

    def test_noBufferRequired(self):
        netlist = self._createNetlist(HsTestPlatform(clkPeriod=10.0))
        self._buildDiamond(netlist)
        before = len(netlist.nodes)
        p = HsNetlistPassBufferPlacement()
        p.runOnHsNetlist(netlist)
        self.assertEqual(len(netlist.nodes), before)
        self.assertEqual(p.result.slots, {})
        self.assertAlmostEqual(p.result.objective, 0.0)

    def test_existingOpaqueBufferCounts(self):
        netlist = self._createNetlist(HsTestPlatform(targetThroughput=0.5))
        x, _ = self._buildTwoOpLoop(netlist)
        ch = netlist.getChannelOfOutput(x, 0)
        netlist.insertNodeOnChannel(ch, netlist.builder.buildUnconnectedBuffer(ch._dtype, 1, HS_BUFFER_TYPE.OPAQUE, x.block, name="buf0"))

        p = HsNetlistPassBufferPlacement()
        p.runOnHsNetlist(netlist)
        self.assertEqual(p.result.slots, {})
        self.assertEqual([r for _, r in p.result.cycleRates], [1.0])

    def test_unreachableThroughput_isInfeasible(self):
        # mul has latency 4, cycle can not have a rate better than 1/5
        netlist = self._createNetlist(HsTestPlatform(targetThroughput=0.5))
        self._buildTwoOpLoop(netlist, loopOp="mul")
        before = netlistSnapshot(netlist)
        with self.assertRaises(StructuralInfeasibilityError):
            HsNetlistPassBufferPlacement().runOnHsNetlist(netlist)
        self.assertEqual(netlistSnapshot(netlist), before)

    def test_lowThroughputTarget_isFeasible(self):
        netlist = self._createNetlist(HsTestPlatform(targetThroughput=0.2))
        self._buildTwoOpLoop(netlist, loopOp="mul")
        p = HsNetlistPassBufferPlacement()
        p.runOnHsNetlist(netlist)
        self.assertEqual(len(p.result.slots), 1)
        self.assertEqual([r for _, r in p.result.cycleRates], [0.2])
        self._assertCyclesBroken(netlist)

    def test_solverTimeLimit(self):
        netlist = self._createNetlist(HsTestPlatform(milpSolver=_TimeoutMilpSolver()))
        self._buildTwoOpLoop(netlist)
        before = netlistSnapshot(netlist)
        with self.assertRaises(SolverBudgetExceededError):
            HsNetlistPassBufferPlacement().runOnHsNetlist(netlist)
        self.assertEqual(netlistSnapshot(netlist), before)

    def test_traceAndMilpDump(self):
        netlist = self._createNetlist()
        self._buildTwoOpLoop(netlist)
        trace = StringIO()
        milpDump = StringIO()
        HsNetlistPassBufferPlacement(DebugTracer(trace), milpDump).runOnHsNetlist(netlist)
        self.assertIn("HsNetlistPassBufferPlacement:", trace.getvalue())
        self.assertIn("insert OPAQUE 1", trace.getvalue().replace("'", "").replace("(", "").replace(",", ""))
        dump = milpDump.getvalue()
        self.assertTrue(dump.startswith(f"problem bufferPlacement_{netlist.label:s}\n"), dump)
        self.assertIn("_throughput", dump)


if __name__ == '__main__':
    unittest.main()
