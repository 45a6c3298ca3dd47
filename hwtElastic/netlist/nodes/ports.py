from typing import Optional

from hwt.hdl.types.hdlType import HdlType


class HsNetNodeOut():
    """
    A class for object which represents output of :class:`HsNetNode` instance.

    :ivar channel: id of the channel connected to this port (None if not connected)
    """
    __slots__ = ["obj", "out_i", "_dtype", "name", "channel"]

    def __init__(self, obj: "HsNetNode", out_i: int, dtype: HdlType, name: Optional[str]):
        self.obj = obj
        self.out_i = out_i
        assert isinstance(dtype, HdlType), dtype
        self._dtype = dtype
        self.name = name
        self.channel: Optional[int] = None

    def getPrettyName(self) -> str:
        objName = self.obj.getPrettyName()
        if self.name:
            return f"{objName:s}_{self.name:s}"
        elif len(self.obj._outputs) == 1:
            return objName
        else:
            return f"{objName:s}_{self.out_i:d}"

    def __repr__(self) -> str:
        if self.name is None:
            return f"<{self.__class__.__name__:s} {self.obj._id:d} [{self.out_i:d}]>"
        else:
            return f"<{self.__class__.__name__:s} {self.obj._id:d} [{self.out_i:d}-{self.name:s}]>"


class HsNetNodeIn():
    """
    A class for object which represents input of :class:`HsNetNode` instance.

    :ivar channel: id of the channel connected to this port (None if not connected)
    """
    __slots__ = ["obj", "in_i", "_dtype", "name", "channel"]

    def __init__(self, obj: "HsNetNode", in_i: int, dtype: HdlType, name: Optional[str]):
        self.obj = obj
        self.in_i = in_i
        assert isinstance(dtype, HdlType), dtype
        self._dtype = dtype
        self.name = name
        self.channel: Optional[int] = None

    def getPrettyName(self) -> str:
        objName = self.obj.getPrettyName()
        if self.name:
            return f"{objName:s}_{self.name:s}"
        elif len(self.obj._inputs) == 1:
            return objName
        else:
            return f"{objName:s}_{self.in_i:d}"

    def __repr__(self) -> str:
        if self.name is None:
            return f"<{self.__class__.__name__:s} {self.obj._id:d} [{self.in_i:d}]>"
        else:
            return f"<{self.__class__.__name__:s} {self.obj._id:d} [{self.in_i:d}-{self.name:s}]>"
