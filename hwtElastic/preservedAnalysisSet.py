from typing import Set, Type, Iterable

from hwt.constants import NOT_SPECIFIED
from hwtElastic.netlist.analysis.blockDominators import HsNetlistAnalysisPassBlockDominators
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass

AnalysisKey = Type[HsNetlistAnalysisPass]


class PreservedAnalysisSet(Set[AnalysisKey]):
    """
    Set of analyses which are still valid after the transformation pass.
    """

    def __init__(self, iterable:Iterable[AnalysisKey]=NOT_SPECIFIED, isAll=False):
        if iterable is NOT_SPECIFIED:
            iterable = ()
        set.__init__(self, iterable)
        self.isAll = isAll

    @classmethod
    def preserveAll(cls):
        return cls(isAll=True)

    @classmethod
    def preserveBlockDominators(cls):
        # blocks are never modified by transformation passes, only channels and operations
        return cls((HsNetlistAnalysisPassBlockDominators,))
