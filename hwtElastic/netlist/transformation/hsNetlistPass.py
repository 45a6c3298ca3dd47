from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.preservedAnalysisSet import PreservedAnalysisSet


class HsNetlistPass():
    """
    Base class for transformation passes on handshake netlist.
    The pass runs in a transaction, if the pass raises an exception all changes done by the pass are reverted.
    """

    def runOnHsNetlist(self, netlist: HsNetlistCtx, *args, **kwargs):
        log = netlist._dbgLogPassExec
        if log is not None:
            log.write(f"Running transformation: {self.__class__.__name__} on {netlist}\n")
        with netlist.transaction():
            pa = self.runOnHsNetlistImpl(netlist, *args, **kwargs)
        assert isinstance(pa, PreservedAnalysisSet), (self.__class__, "runOnHsNetlistImpl should return PreservedAnalysisSet", pa)
        if pa.isAll:
            self._markUpToDate(netlist, netlist._analysis_cache.keys())
        elif not pa:
            netlist.invalidateAllAnalysis()
        else:
            toRm = []
            toKeep = []
            for k in netlist._analysis_cache.keys():
                if k in pa or k.__class__ in pa:
                    toKeep.append(k)
                else:
                    toRm.append(k)
            for k in toRm:
                netlist.invalidateAnalysis(k)
            self._markUpToDate(netlist, toKeep)

        return pa

    @staticmethod
    def _markUpToDate(netlist: HsNetlistCtx, keys):
        v = netlist._structVersion
        for k in keys:
            netlist._analysis_cache[k]._netlistVersion = v

    def runOnHsNetlistImpl(self, netlist: HsNetlistCtx, *args, **kwargs) -> PreservedAnalysisSet:
        raise NotImplementedError("Should be implemented in child class", self)
