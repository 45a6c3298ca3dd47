from pathlib import Path
from typing import Tuple, Type, Optional, Union, Set

from hwtElastic.netlist.translation.dumpNodesDot import HsNetlistAnalysisPassDumpNodesDot
from hwtElastic.netlist.translation.dumpNodesTxt import HsNetlistAnalysisPassDumpNodesTxt
from hwtElastic.platform.fileUtils import outputFileGetter

DebugId = Tuple[Optional[Type], Optional[str]]


class HsDebugBundle():
    """
    Container of debug options, each option is a tuple (pass class, output file name).
    The files are written into debugDir/<netlist label>/

    :note: if the number N in DBG_N_* is the same it means that these debug options are working with the same input
    """
    DEFAULT_DEBUG_DIR = "tmp"

    DBG_passExec = (None, None)  # log of executed passes and analyses to stderr
    DBG_0_input = (HsNetlistAnalysisPassDumpNodesDot, "00.input.dot")  # circuit as received from front end
    DBG_0_inputTxt = (HsNetlistAnalysisPassDumpNodesTxt, "00.input.txt")  # same as DBG_0_input just in txt
    DBG_1_bufferPlacementTrace = (None, "01.bufferPlacement.trace.txt")  # cycles, solver status and inserted buffers
    DBG_1_milp = (None, "01.bufferPlacement.milp.txt")  # mixed integer linear program for buffer placement
    DBG_2_buffered = (HsNetlistAnalysisPassDumpNodesDot, "02.buffered.dot")  # circuit after buffer placement
    DBG_2_bufferedTxt = (HsNetlistAnalysisPassDumpNodesTxt, "02.buffered.txt")
    DBG_3_speculationTrace = (None, "03.speculation.trace.txt")  # selected positions of speculation operations
    DBG_4_final = (HsNetlistAnalysisPassDumpNodesDot, "04.final.dot")  # circuit with speculative region marked
    DBG_4_finalTxt = (HsNetlistAnalysisPassDumpNodesTxt, "04.final.txt")  # same as DBG_4_final just in txt

    ALL = None
    NONE = {}
    ALL_RELIABLE = {
        DBG_0_input,
        DBG_0_inputTxt,
        DBG_1_bufferPlacementTrace,
        DBG_1_milp,
        DBG_2_buffered,
        DBG_2_bufferedTxt,
        DBG_3_speculationTrace,
        DBG_4_final,
        DBG_4_finalTxt,
    }
    DEFAULT = NONE

    # bundle for debugging of buffer placement
    DBG_BUFFER_PLACEMENT = {
        DBG_0_input,
        DBG_1_bufferPlacementTrace,
        DBG_1_milp,
        DBG_2_buffered,
    }
    # bundle for debugging of speculation
    DBG_SPECULATION = {
        DBG_2_buffered,
        DBG_3_speculationTrace,
        DBG_4_final,
        DBG_4_finalTxt,
    }

    def __init__(self, debugDir: Optional[Union[str, Path]], filter_: Optional[Set[DebugId]]):
        """
        :attention: if debugDir is None no debug option will be enabled
        """
        self.dir = None if debugDir is None else Path(debugDir)
        self.filter = filter_
        self.firstRun = True

    def isActivated(self, item: DebugId):
        return self.dir is not None and (self.filter is None or item in self.filter)

    def runDebugIfEnabled(self, id_: DebugId, applyArgs: tuple,
                          applyFnGetter=lambda p: p.runOnHsNetlist,
                          constructorArgs: tuple=(),
                          constructorKwargs: dict={}):
        debugDir = self.dir
        if debugDir is not None and self.isActivated(id_):
            if self.firstRun:
                debugDir.mkdir(parents=True, exist_ok=True)
                self.firstRun = False

            cls, fileName = id_
            assert cls is not None, ("This debug option is not a pass", id_)
            if fileName is not None:
                obj = cls(outputFileGetter(debugDir, fileName), *constructorArgs, **constructorKwargs)
            else:
                obj = cls(*constructorArgs, **constructorKwargs)

            applyFn = applyFnGetter(obj)
            applyFn(*applyArgs)
