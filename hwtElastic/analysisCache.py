from collections import OrderedDict
from typing import Type, Union

from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass

AnalysisKey = Union[Type[HsNetlistAnalysisPass], HsNetlistAnalysisPass]


class AnalysisCache():
    """
    Storage of computed analyses, the analysis is computed on first request and reused
    until it is invalidated or until the owner reports it as outdated.

    :ivar _analysis_cache: analysis class (or analysis instance if the analysis was created with arguments) -> analysis
    """

    def __init__(self):
        self._analysis_cache: OrderedDict[AnalysisKey, HsNetlistAnalysisPass] = OrderedDict()

    def invalidateAnalysis(self, key: AnalysisKey):
        """
        :param key: the key used in :meth:`getAnalysis`, if it is a class, also all instances
            of this class used as a key are invalidated
        """
        cache = self._analysis_cache
        keys = [key] if key in cache else []
        if isinstance(key, type):
            keys.extend(k for k in cache.keys() if type(k) is key)

        for k in reversed(keys):
            cache.pop(k).invalidate(self)

    def invalidateAllAnalysis(self):
        cache = self._analysis_cache
        while cache:
            _, a = cache.popitem()
            a.invalidate(self)

    def _isAnalysisUpToDate(self, a: HsNetlistAnalysisPass) -> bool:
        return True

    def _runAnalysisImpl(self, a: HsNetlistAnalysisPass):
        raise NotImplementedError("Implement this in a subclass", self)

    def getAnalysisIfAvailable(self, key: AnalysisKey):
        a = self._analysis_cache.get(key, None)
        if a is None:
            return None
        elif not self._isAnalysisUpToDate(a):
            self.invalidateAnalysis(key)
            return None
        return a

    def getAnalysis(self, key: AnalysisKey):
        """
        :param key: analysis class or an analysis object (if the analysis requires arguments)
        :return: cached analysis or a newly computed one
        """
        a = self.getAnalysisIfAvailable(key)
        if a is None:
            a = key if isinstance(key, HsNetlistAnalysisPass) else key()
            self._analysis_cache[key] = a
            self._runAnalysisImpl(a)
        return a
