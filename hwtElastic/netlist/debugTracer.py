from io import StringIO
from types import FunctionType
from typing import Optional, Union, List, Tuple

from hwtElastic.netlist.nodes.node import HsNetNode


class DebugTracer():
    """
    Indented text trace of actions of the transformation passes (which cycles were found,
    which buffers were inserted, which positions were selected for speculation, ...).

    Scopes are opened using :meth:`~.scoped` and the `with` statement, label of the scope
    is written only if something was logged inside of it.

    :ivar _out: output stream, if None nothing is written
    """
    INDENT = "  "

    def __init__(self, out: Optional[StringIO]):
        self._out = out
        self._scope: List[Tuple[Union[str, FunctionType, type], Optional[HsNetNode]]] = []
        self._labelPrinted: List[bool] = []

    def scoped(self, nameOrObj: Union[str, FunctionType, type], node: Optional[HsNetNode]=None):
        self._scope.append((nameOrObj, node))
        self._labelPrinted.append(False)
        return self

    @staticmethod
    def _formatScopeLabel(obj, node: Optional[HsNetNode]) -> str:
        if isinstance(obj, str):
            label = obj
        elif isinstance(obj, (FunctionType, type)):
            label = getattr(obj, "__qualname__", obj.__name__)
        else:
            label = repr(obj)
        if node is not None:
            label = f"{label:s} {node.getPrettyName():s}<{node._id:d}>"
        return label

    def _writeScopeLabels(self):
        out = self._out
        for depth, ((obj, node), printed) in enumerate(zip(self._scope, self._labelPrinted)):
            if not printed:
                out.write(self.INDENT * depth)
                out.write(self._formatScopeLabel(obj, node))
                out.write(":\n")
                self._labelPrinted[depth] = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self._out is not None:
            self.log(("raised", exc_type.__name__, exc_val))
        self._scope.pop()
        self._labelPrinted.pop()

    def log(self, msg, formater=lambda x: x):
        out = self._out
        if out is None:
            return
        _msg = formater(msg)
        if not isinstance(_msg, str):
            _msg = repr(_msg)
        if self._scope:
            self._writeScopeLabels()
        out.write(self.INDENT * len(self._scope))
        out.write(_msg)
        out.write("\n")
