from io import StringIO

from hwt.pyUtils.typingFuture import override
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.platform.fileUtils import OutputStreamGetter


class HsNetlistAnalysisPassDumpNodesTxt(HsNetlistAnalysisPass):
    """
    Dump operations with their connections in text format, one operation per line
    followed by a line for each connected output.
    """

    def __init__(self, outStreamGetter: OutputStreamGetter):
        super(HsNetlistAnalysisPassDumpNodesTxt, self).__init__()
        self.outStreamGetter = outStreamGetter

    @staticmethod
    def _printNode(n: HsNetNode, out: StringIO):
        out.write(f"{n} block:{n.block}")
        if n.attrs:
            attrs = ", ".join(f"{k:s}={v}" for k, v in sorted(n.attrs.items(), key=lambda kv: kv[0]))
            out.write(f" {{{attrs:s}}}")
        if n.isSpeculativeRegionMember:
            out.write(" speculative")
        out.write("\n")
        for ch in n.iterOutputChannels():
            out.write(f"  o{ch.out_i:d} -> {ch.dstNode:d}:i{ch.in_i:d} {ch._dtype}")
            if ch.combDelay is not None:
                out.write(f" delay:{ch.combDelay:g}")
            out.write("\n")

    @override
    def runOnHsNetlistImpl(self, netlist: HsNetlistCtx):
        out, doClose = self.outStreamGetter(netlist.label)
        try:
            # :note: sort is to improve readability
            for n in sorted(netlist.nodes.values(), key=lambda n: n._id):
                self._printNode(n, out)
            out.write("\n")
        finally:
            if doClose:
                out.close()
