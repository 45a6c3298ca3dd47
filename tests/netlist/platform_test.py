#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from io import StringIO
from pathlib import Path
import tempfile
import unittest

from hwtElastic.errors import ConfigurationError, RegionLegalityError
from hwtElastic.netlist.analysis.combDelay import HsNetlistAnalysisPassCombDelay
from hwtElastic.netlist.nodes.opKind import HS_BUFFER_TYPE, HS_OP_KIND
from hwtElastic.netlist.transformation.bufferPlacement.manualBuffers import HsBufferPosition
from hwtElastic.netlist.transformation.speculation.insertSpeculation import HS_SPECULATION_MODE
from hwtElastic.netlist.transformation.speculation.positions import HsSpeculationPositions, HsSpecPosition
from hwtElastic.netlist.translation.dumpNodesDot import HsNetlistAnalysisPassDumpNodesDot
from hwtElastic.netlist.translation.dumpNodesTxt import HsNetlistAnalysisPassDumpNodesTxt
from hwtElastic.platform.debugBundle import HsDebugBundle
from hwtElastic.platform.fileUtils import stringIoGetter
from hwtElastic.platform.opRealizationMeta import OpRealizationMeta, EMPTY_OP_REALIZATION
from hwtElastic.platform.platform import DefaultHsPlatform
from hwtElastic.platform.timingModelJson import loadTimingModelJson
from tests.netlist.baseHsNetlistTC import BaseHsNetlistTC, HsTestPlatform, u8


class DefaultHsPlatform_TC(BaseHsNetlistTC):

    def test_invalidConfig(self):
        timings = {"default": OpRealizationMeta(1.0)}
        for kwargs, ref in [
                ({"clkPeriod": 0}, "clkPeriod"),
                ({"clkPeriod": -1.0}, "clkPeriod"),
                ({"targetThroughput": 0}, "targetThroughput"),
                ({"targetThroughput": 1.5}, "targetThroughput"),
                ({"maxSlotsPerChannel": 0}, "maxSlotsPerChannel"),
                ({"solverTimeLimit": 0}, "solverTimeLimit"),
                ({"speculationMode": "automatic"}, "speculationMode"),
                ]:
            args = {"clkPeriod": 4.0, "targetThroughput": 0.5, "opTimings": timings}
            args.update(kwargs)
            with self.assertRaises(ConfigurationError, msg=repr(kwargs)) as ctx:
                DefaultHsPlatform(**args)
            self.assertEqual(ctx.exception.ref, ref)

    def test_getOpRealization(self):
        netlist = self._createNetlist()
        b = netlist.builder
        e = b.buildEntry(u8)
        opaque = b.buildBuffer(e._outputs[0], 3, HS_BUFFER_TYPE.OPAQUE)
        transparent = b.buildBuffer(opaque._outputs[0], 2, HS_BUFFER_TYPE.TRANSPARENT)
        placeholder = b.buildPlaceholderBuffer(transparent._outputs[0])
        mul = b.buildOperator("mul", [placeholder._outputs[0]])
        unknown = b.buildOperator("fancyOp", [mul._outputs[0]])
        b.buildEnd([unknown._outputs[0]])

        p = netlist.platform
        self.assertEqual(p.getOpRealization(opaque), OpRealizationMeta(0.3, 3))
        self.assertEqual(p.getOpRealization(transparent), OpRealizationMeta(0.3, 0))
        self.assertIs(p.getOpRealization(placeholder), EMPTY_OP_REALIZATION)
        self.assertEqual(p.getOpRealization(mul), OpRealizationMeta(0.6, 4))
        self.assertEqual(p.getOpRealization(unknown), p.opTimings["default"])
        self.assertEqual(p.getOpRealization(e), OpRealizationMeta(0.0, 0))

    def test_missingTiming(self):
        p = DefaultHsPlatform(4.0, 0.5, {"add": OpRealizationMeta(1.5)})
        with self.assertRaises(ConfigurationError) as ctx:
            p.getTiming("mul")
        self.assertEqual(ctx.exception.ref, "mul")
        self.assertEqual(p.getTiming("add"), OpRealizationMeta(1.5))

    def test_loadTimingModelJson(self):
        src = """{
            "clkPeriod": 5.0,
            "targetThroughput": 0.25,
            "speculationMode": "automatic",
            "ops": {
                "add": {"delay": 1.0},
                "mul": {"delay": 0.5, "latency": 3},
                "buffer": {"delay": 0.2},
                "default": {"delay": 0.1}
            }
        }"""
        p = loadTimingModelJson(src, maxSlotsPerChannel=4)
        self.assertEqual(p.clkPeriod, 5.0)
        self.assertEqual(p.targetThroughput, 0.25)
        self.assertEqual(p.maxSlotsPerChannel, 4)
        self.assertIs(p.speculationMode, HS_SPECULATION_MODE.AUTOMATIC)
        self.assertEqual(p.getTiming("mul"), OpRealizationMeta(0.5, 3))
        self.assertEqual(p.getTiming("add"), OpRealizationMeta(1.0, 0))
        self.assertEqual(p.getBufferDelay(), 0.2)

        with tempfile.TemporaryDirectory() as d:
            f = Path(d) / "timing.json"
            f.write_text(src)
            p = loadTimingModelJson(f, speculationMode=HS_SPECULATION_MODE.EXPLICIT)
            self.assertEqual(p.clkPeriod, 5.0)
            self.assertIs(p.speculationMode, HS_SPECULATION_MODE.EXPLICIT)

    def test_loadTimingModelJson_malformed(self):
        for src in [
                "{",
                "[]",
                '{"clkPeriod": 5.0, "targetThroughput": 0.5}',
                '{"clkPeriod": "5", "targetThroughput": 0.5, "ops": {}}',
                '{"clkPeriod": 5.0, "targetThroughput": 0.5, "ops": []}',
                '{"clkPeriod": 5.0, "targetThroughput": 0.5, "ops": {"add": 1.0}}',
                '{"clkPeriod": 5.0, "targetThroughput": 0.5, "ops": {"add": {"delay": -1.0}}}',
                '{"clkPeriod": 5.0, "targetThroughput": 0.5, "ops": {"mul": {"latency": 1.5}}}',
                '{"clkPeriod": 0.0, "targetThroughput": 0.5, "ops": {}}',
                '{"clkPeriod": 5.0, "targetThroughput": 0.5, "ops": {}, "speculationMode": "sometimes"}',
                ]:
            with self.assertRaises(ConfigurationError, msg=src):
                loadTimingModelJson(src)

    def test_runHsNetlistPasses(self):
        netlist = self._createNetlist(HsTestPlatform(clkPeriod=10.0, speculationMode=HS_SPECULATION_MODE.AUTOMATIC))
        self._buildDiamond(netlist)
        m = netlist.getNode("m")
        ch = netlist.getChannelOfOutput(m, 0)
        placeholder = netlist.builder.buildUnconnectedBuffer(ch._dtype, 1, HS_BUFFER_TYPE.TRANSPARENT, m.block, name="reserved")
        netlist.setNodeAttr(placeholder, "placeholder", True)
        netlist.insertNodeOnChannel(ch, placeholder)

        res = netlist.platform.runHsNetlistPasses(
            netlist,
            bufferPositions=[HsBufferPosition("m", 0, 2, HS_BUFFER_TYPE.TRANSPARENT)],
            speculationPositions=HsSpeculationPositions(HsSpecPosition("s", 0)))

        self.assertEqual(res.slots, {})
        with self.assertRaises(ConfigurationError):
            netlist.getNode("reserved")
        self.assertEqual(netlist.getChannelBuffer("m", 0), (2, HS_BUFFER_TYPE.TRANSPARENT))
        self.assertEqual(len(list(netlist.iterNodesOfKind(HS_OP_KIND.SPECULATOR))), 1)
        members = sorted(n.name for n in netlist.nodes.values() if n.isSpeculativeRegionMember and n.name is not None)
        self.assertEqual(members, ["a", "b", "f", "r", "s"])
        self.assertFalse(netlist.getNode("m").isSpeculativeRegionMember)
        self.assertEqual([ch.getPrettyName() for ch in netlist.channels.values() if ch.combDelay is None], [])

    def test_runHsNetlistPasses_speculationMissesClkPeriod(self):
        netlist = self._createNetlist(HsTestPlatform(clkPeriod=2.0, speculationMode=HS_SPECULATION_MODE.AUTOMATIC))
        self._buildDiamond(netlist)
        with self.assertRaises(RegionLegalityError) as ctx:
            netlist.platform.runHsNetlistPasses(
                netlist, speculationPositions=HsSpeculationPositions(HsSpecPosition("s", 0)))
        self.assertEqual(ctx.exception.speculator, "s")

        # the netlist stays buffered and without speculation operations
        for k in (HS_OP_KIND.SPECULATOR, HS_OP_KIND.SAVE, HS_OP_KIND.COMMIT):
            self.assertEqual(list(netlist.iterNodesOfKind(k)), [], k)
        self.assertTrue(list(netlist.iterNodesOfKind(HS_OP_KIND.BUFFER)))
        delays = netlist.getAnalysis(HsNetlistAnalysisPassCombDelay)
        self.assertEqual(delays.getTimingViolations(2.0 + 1e-6), [])

    def test_runHsNetlistPasses_debugDir(self):
        with tempfile.TemporaryDirectory() as d:
            netlist = self._createNetlist(HsTestPlatform(debugDir=d, debugFilter=HsDebugBundle.ALL_RELIABLE), label="loop")
            self._buildTwoOpLoop(netlist)
            netlist.platform.runHsNetlistPasses(netlist)
            files = sorted(f.name for f in (Path(d) / "loop").iterdir())
            self.assertEqual(files, sorted([
                "00.input.dot", "00.input.txt",
                "01.bufferPlacement.trace.txt", "01.bufferPlacement.milp.txt",
                "02.buffered.dot", "02.buffered.txt",
                "04.final.dot", "04.final.txt",
            ]))
            trace = (Path(d) / "loop" / "01.bufferPlacement.trace.txt").read_text()
            self.assertIn("insert", trace)

    def test_dumps(self):
        netlist = self._createNetlist(label="diamond")
        self._buildDiamond(netlist)
        dot = StringIO()
        HsNetlistAnalysisPassDumpNodesDot(stringIoGetter(dot)).runOnHsNetlist(netlist)
        dot = dot.getvalue()
        self.assertIn("digraph", dot)
        for b in range(4):
            self.assertIn(f"cluster_block{b:d}", dot)
        self.assertIn("legend", dot)

        txt = StringIO()
        HsNetlistAnalysisPassDumpNodesTxt(stringIoGetter(txt)).runOnHsNetlist(netlist)
        lines = txt.getvalue().splitlines()
        self.assertEqual(sum(1 for line in lines if line.startswith("<HsNetNode")), len(netlist.nodes))
        self.assertEqual(sum(1 for line in lines if line.startswith("  o")), len(netlist.channels))


if __name__ == '__main__':
    unittest.main()
