#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from io import StringIO
import unittest

from hwtElastic.errors import RegionLegalityError, ConfigurationError, InternalConsistencyError, HsUserError
from hwtElastic.netlist.analysis.consistencyCheck import HsNetlistPassConsistencyCheck
from hwtElastic.netlist.debugTracer import DebugTracer
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND
from hwtElastic.netlist.transformation.speculation.insertSpeculation import HsNetlistPassInsertSpeculation, \
    HS_SPECULATION_MODE
from hwtElastic.netlist.transformation.speculation.markSpeculativeRegion import HsNetlistPassMarkSpeculativeRegion
from hwtElastic.netlist.transformation.speculation.positions import HsSpeculationPositions, HsSpecPosition
from tests.netlist.baseHsNetlistTC import BaseHsNetlistTC, netlistSnapshot, u8


class HsNetlistPassInsertSpeculation_TC(BaseHsNetlistTC):

    def _regionMembers(self, netlist):
        return sorted(n.getPrettyName() for n in netlist.nodes.values() if n.isSpeculativeRegionMember)

    def _checkDiamondRegion(self, netlist, spec):
        s, f, r, m = (netlist.getNode(n) for n in ("s", "f", "r", "m"))
        self.assertIs(spec.kind, HS_OP_KIND.SPECULATOR)
        self.assertEqual(list(spec.iterPredecessors()), [s])
        self.assertEqual(list(spec.iterSuccessors()), [f])
        self.assertEqual(spec.attrs["speculatedNode"], s._id)

        saves = [netlist.nodes[i] for i in spec.attrs["saves"]]
        self.assertEqual(len(saves), 2)
        self.assertEqual(sorted(n.getPrettyName() for save in saves for n in save.iterSuccessors()), ["a", "b"])
        for save in saves:
            self.assertIs(save.kind, HS_OP_KIND.SAVE)
            self.assertEqual(list(save.iterPredecessors()), [f])
            self.assertEqual(save.attrs["speculator"], spec._id)

        commits = [netlist.nodes[i] for i in spec.attrs["commits"]]
        self.assertEqual(len(commits), 1)
        commit, = commits
        self.assertIs(commit.kind, HS_OP_KIND.COMMIT)
        self.assertEqual(list(commit.iterPredecessors()), [r])
        self.assertEqual(list(commit.iterSuccessors()), [m])

        HsNetlistPassMarkSpeculativeRegion().runOnHsNetlist(netlist)
        expected = sorted(["s", "f", "a", "b", "r",
                           spec.getPrettyName(), commit.getPrettyName(),
                           *(save.getPrettyName() for save in saves)])
        self.assertEqual(self._regionMembers(netlist), expected)
        HsNetlistPassConsistencyCheck().runOnHsNetlist(netlist)

    def test_automatic_diamond(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        trace = StringIO()
        p = HsNetlistPassInsertSpeculation(HsSpeculationPositions(HsSpecPosition("s", 0)),
                                           HS_SPECULATION_MODE.AUTOMATIC, DebugTracer(trace))
        p.runOnHsNetlist(netlist)
        self._checkDiamondRegion(netlist, p.speculator)
        self.assertIn("reconvergence", trace.getvalue())

    def test_explicit_diamond(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        positions = HsSpeculationPositions.fromJson("""{
            "speculator": {"operation": "s", "index": 0},
            "saves": [{"operation": "f", "index": 0}, {"operation": "f", "index": 1}],
            "commits": [{"operation": "r", "index": 0}]
        }""")
        p = HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.EXPLICIT)
        p.runOnHsNetlist(netlist)
        self._checkDiamondRegion(netlist, p.speculator)

    def test_rerun_replansFromScratch(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        positions = HsSpeculationPositions(HsSpecPosition("s", 0))
        HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.AUTOMATIC).runOnHsNetlist(netlist)
        p = HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.AUTOMATIC)
        p.runOnHsNetlist(netlist)
        self.assertEqual(len(list(netlist.iterNodesOfKind(HS_OP_KIND.SPECULATOR))), 1)
        self.assertEqual(len(list(netlist.iterNodesOfKind(HS_OP_KIND.SAVE))), 2)
        self.assertEqual(len(list(netlist.iterNodesOfKind(HS_OP_KIND.COMMIT))), 1)
        self._checkDiamondRegion(netlist, p.speculator)

    def test_markIdempotent(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        HsNetlistPassInsertSpeculation(HsSpeculationPositions(HsSpecPosition("s", 0)),
                                       HS_SPECULATION_MODE.AUTOMATIC).runOnHsNetlist(netlist)
        HsNetlistPassMarkSpeculativeRegion().runOnHsNetlist(netlist)
        first = netlistSnapshot(netlist)
        HsNetlistPassMarkSpeculativeRegion().runOnHsNetlist(netlist)
        self.assertEqual(netlistSnapshot(netlist), first)

    def test_mark_brokenRegion(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        p = HsNetlistPassInsertSpeculation(HsSpeculationPositions(HsSpecPosition("s", 0)), HS_SPECULATION_MODE.AUTOMATIC)
        p.runOnHsNetlist(netlist)
        spec = p.speculator
        commits = spec.attrs["commits"]
        saves = spec.attrs["saves"]
        for attr, v in [("commits", []),
                        ("saves", [9999]),
                        ("speculatedNode", 9999)]:
            netlist.setNodeAttr(spec, "commits", commits)
            netlist.setNodeAttr(spec, "saves", saves)
            netlist.setNodeAttr(spec, "speculatedNode", netlist.getNode("s")._id)
            netlist.setNodeAttr(spec, attr, v)
            with self.assertRaises(InternalConsistencyError, msg=attr) as ctx:
                HsNetlistPassMarkSpeculativeRegion().runOnHsNetlist(netlist)
            self.assertNotIsInstance(ctx.exception, HsUserError)
            self.assertFalse(any(n.isSpeculativeRegionMember for n in netlist.nodes.values()))

    def test_explicit_saveNotDominated(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        before = netlistSnapshot(netlist)
        positions = HsSpeculationPositions(HsSpecPosition("a", 0),
                                           [HsSpecPosition("b", 0)],
                                           [HsSpecPosition("r", 0)])
        with self.assertRaises(RegionLegalityError) as ctx:
            HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.EXPLICIT).runOnHsNetlist(netlist)
        self.assertEqual(ctx.exception.speculator, "a")
        self.assertEqual(netlistSnapshot(netlist), before)

    def test_explicit_missingOperation(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        before = netlistSnapshot(netlist)
        for positions, ref in [
                (HsSpeculationPositions(HsSpecPosition("nonexistent", 0), [], [HsSpecPosition("r", 0)]), "nonexistent"),
                (HsSpeculationPositions(HsSpecPosition("s", 0), [HsSpecPosition("missing", 0)], [HsSpecPosition("r", 0)]), "missing"),
                (HsSpeculationPositions(HsSpecPosition("s", 0), [], [HsSpecPosition(9999, 0)]), 9999),
                ]:
            with self.assertRaises(ConfigurationError) as ctx:
                HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.EXPLICIT).runOnHsNetlist(netlist)
            self.assertEqual(ctx.exception.ref, ref)
            self.assertEqual(netlistSnapshot(netlist), before)

    def test_explicit_sameChannelTwice(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        positions = HsSpeculationPositions(HsSpecPosition("s", 0), [HsSpecPosition("s", 0)], [HsSpecPosition("r", 0)])
        with self.assertRaises(ConfigurationError):
            HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.EXPLICIT).runOnHsNetlist(netlist)

    def test_explicit_noCommit(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        positions = HsSpeculationPositions(HsSpecPosition("s", 0))
        with self.assertRaises(RegionLegalityError):
            HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.EXPLICIT).runOnHsNetlist(netlist)

    def test_explicit_leakWithoutCommit(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        before = netlistSnapshot(netlist)
        # path through "b" reaches "end" without commit
        positions = HsSpeculationPositions(HsSpecPosition("s", 0), [HsSpecPosition("f", 0)], [HsSpecPosition("a", 0)])
        with self.assertRaises(RegionLegalityError):
            HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.EXPLICIT).runOnHsNetlist(netlist)
        self.assertEqual(netlistSnapshot(netlist), before)

    def test_explicit_commitOutsideOfRegion(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        positions = HsSpeculationPositions(HsSpecPosition("s", 0), [], [HsSpecPosition("r", 0), HsSpecPosition("entry", 0)])
        with self.assertRaises(RegionLegalityError):
            HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.EXPLICIT).runOnHsNetlist(netlist)

    def test_automatic_withSaves_isConfigError(self):
        netlist = self._createNetlist()
        self._buildDiamond(netlist)
        positions = HsSpeculationPositions(HsSpecPosition("s", 0), [HsSpecPosition("f", 0)])
        with self.assertRaises(ConfigurationError):
            HsNetlistPassInsertSpeculation(positions, HS_SPECULATION_MODE.AUTOMATIC).runOnHsNetlist(netlist)

    def test_automatic_noBlockBoundary(self):
        netlist = self._createNetlist()
        b = netlist.builder
        e = b.buildEntry(u8, name="entry")
        s = b.buildOperator("add", [e._outputs[0]], name="s")
        t = b.buildOperator("add", [s._outputs[0]], name="t")
        b.buildEnd([t._outputs[0]], name="end")
        before = netlistSnapshot(netlist)
        with self.assertRaises(RegionLegalityError):
            HsNetlistPassInsertSpeculation(HsSpeculationPositions(HsSpecPosition("s", 0)),
                                           HS_SPECULATION_MODE.AUTOMATIC).runOnHsNetlist(netlist)
        self.assertEqual(netlistSnapshot(netlist), before)

    def test_positionsJson_malformed(self):
        for src in [
                "{",
                "[]",
                '{"saves": []}',
                '{"speculator": {"operation": "s"}}',
                '{"speculator": {"operation": true, "index": 0}}',
                '{"speculator": {"operation": "s", "index": 0}, "saves": {}}',
                ]:
            with self.assertRaises(ConfigurationError, msg=src):
                HsSpeculationPositions.fromJson(src)


if __name__ == '__main__':
    unittest.main()
