#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import sys
from unittest import TestLoader, TextTestRunner, TestSuite

from tests.netlist.bufferPlacement_test import HsNetlistPassBufferPlacement_TC
from tests.netlist.context_test import HsNetlistCtx_TC
from tests.netlist.manualBuffers_test import HsNetlistPassInsertBuffers_TC
from tests.netlist.platform_test import DefaultHsPlatform_TC
from tests.netlist.speculation_test import HsNetlistPassInsertSpeculation_TC


def testSuiteFromTCs(*tcs):
    loader = TestLoader()
    loadedTcs = [loader.loadTestsFromTestCase(tc) for tc in tcs]
    suite = TestSuite(loadedTcs)
    return suite


suite = testSuiteFromTCs(
    HsNetlistCtx_TC,
    HsNetlistPassInsertBuffers_TC,
    HsNetlistPassBufferPlacement_TC,
    HsNetlistPassInsertSpeculation_TC,
    DefaultHsPlatform_TC,
)


def main():
    # runner = TextTestRunner(verbosity=2, failfast=True)
    runner = TextTestRunner(verbosity=2)
    res = runner.run(suite)
    if not res.wasSuccessful():
        sys.exit(1)


if __name__ == '__main__':
    main()
