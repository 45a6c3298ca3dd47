
class HsNetlistAnalysisPass():
    """
    A base class for handshake netlist analysis classes

    :ivar _netlistVersion: structural version of the netlist when this analysis was computed
    """

    def runOnHsNetlist(self, netlist: "HsNetlistCtx"):
        "Perform the analysis on the netlist"
        log = netlist._dbgLogPassExec
        if log is not None:
            log.write(f"Running analysis: {self.__class__.__name__} on {netlist}\n")
        self._netlistVersion = netlist._structVersion
        self.runOnHsNetlistImpl(netlist)

    def runOnHsNetlistImpl(self, netlist: "HsNetlistCtx"):
        raise NotImplementedError("Implement this in implementation of this abstract class", self)

    def invalidate(self, netlist: "HsNetlistCtx"):
        """
        Remove any modification outside of this class when this analysis is invalidated
        :note: to invalidate pass use HsNetlistCtx.invalidateAnalysis, this function is callback for mentioned function
        which should be used by the pass to implement additional actions
        """
        log = netlist._dbgLogPassExec
        if log is not None:
            log.write(f"Invalidating analysis: {self.__class__.__name__} on {netlist}\n")
