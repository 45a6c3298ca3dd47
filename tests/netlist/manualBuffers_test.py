#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from pathlib import Path
import tempfile
import unittest

from hwtElastic.errors import ConfigurationError
from hwtElastic.netlist.nodes.opKind import HS_BUFFER_TYPE, HS_OP_KIND
from hwtElastic.netlist.transformation.bufferPlacement.manualBuffers import HsNetlistPassInsertBuffers, \
    HsBufferPosition, loadBufferPositionsJson
from tests.netlist.baseHsNetlistTC import BaseHsNetlistTC, netlistSnapshot


class HsNetlistPassInsertBuffers_TC(BaseHsNetlistTC):

    def test_roundTrip(self):
        netlist = self._createNetlist()
        self._buildTwoOpLoop(netlist)
        HsNetlistPassInsertBuffers([
            HsBufferPosition("x", 0, 3, HS_BUFFER_TYPE.OPAQUE),
            HsBufferPosition("y", 1, 1, HS_BUFFER_TYPE.TRANSPARENT),
        ]).runOnHsNetlist(netlist)
        self.assertEqual(netlist.getChannelBuffer("x", 0), (3, HS_BUFFER_TYPE.OPAQUE))
        self.assertEqual(netlist.getChannelBuffer("y", 1), (1, HS_BUFFER_TYPE.TRANSPARENT))
        self.assertEqual(netlist.getChannelBuffer("y", 0), (0, None))
        self.assertEqual(len(list(netlist.iterNodesOfKind(HS_OP_KIND.BUFFER))), 2)

    def test_byId(self):
        netlist = self._createNetlist()
        x, _ = self._buildTwoOpLoop(netlist)
        HsNetlistPassInsertBuffers([HsBufferPosition(x._id, 0, 2, HS_BUFFER_TYPE.TRANSPARENT)]).runOnHsNetlist(netlist)
        self.assertEqual(netlist.getChannelBuffer(x, 0), (2, HS_BUFFER_TYPE.TRANSPARENT))

    def test_invalidPositions_noPartialInsertion(self):
        for positions, ref in [
                ([HsBufferPosition("x", 0, 1, HS_BUFFER_TYPE.OPAQUE), HsBufferPosition("missing", 0, 1, HS_BUFFER_TYPE.OPAQUE)], "missing"),
                ([HsBufferPosition("x", 0, 1, HS_BUFFER_TYPE.OPAQUE), HsBufferPosition("y", 5, 1, HS_BUFFER_TYPE.OPAQUE)], "y"),
                ([HsBufferPosition("x", 0, 1, HS_BUFFER_TYPE.OPAQUE), HsBufferPosition("y", 0, 0, HS_BUFFER_TYPE.OPAQUE)], "y"),
                ([HsBufferPosition("x", 0, 1, HS_BUFFER_TYPE.OPAQUE), HsBufferPosition("x", 0, 2, HS_BUFFER_TYPE.OPAQUE)], "x"),
                ]:
            netlist = self._createNetlist()
            self._buildTwoOpLoop(netlist)
            before = netlistSnapshot(netlist)
            with self.assertRaises(ConfigurationError) as ctx:
                HsNetlistPassInsertBuffers(positions).runOnHsNetlist(netlist)
            self.assertEqual(ctx.exception.ref, ref)
            self.assertEqual(netlistSnapshot(netlist), before)

    def test_loadJson(self):
        src = """{"buffers": [
            {"operation": "x", "index": 0, "slots": 2, "type": "opaque"},
            {"operation": 3, "index": 1, "slots": 1, "type": "TRANSPARENT"}
        ]}"""
        positions = loadBufferPositionsJson(src)
        self.assertEqual([(p.producer, p.outIdx, p.slots, p.bufferType) for p in positions], [
            ("x", 0, 2, HS_BUFFER_TYPE.OPAQUE),
            (3, 1, 1, HS_BUFFER_TYPE.TRANSPARENT),
        ])
        with tempfile.TemporaryDirectory() as d:
            f = Path(d) / "buffers.json"
            f.write_text(src)
            self.assertEqual(len(loadBufferPositionsJson(f)), 2)

    def test_loadJson_malformed(self):
        for src in [
                "{",
                "{}",
                '{"buffers": {}}',
                '{"buffers": [{"operation": "x", "index": 0, "slots": 2}]}',
                '{"buffers": [{"operation": "x", "index": 0, "slots": 2, "type": "lukewarm"}]}',
                '{"buffers": [1]}',
                ]:
            with self.assertRaises(ConfigurationError, msg=src):
                loadBufferPositionsJson(src)


if __name__ == '__main__':
    unittest.main()
