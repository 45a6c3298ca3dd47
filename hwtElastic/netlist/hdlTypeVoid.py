from hwt.hdl.types.hdlType import HdlType


class _HVoidData(HdlType):
    """
    :note: use HVoidData directly
    """

    def bit_length(self):
        return 0

    def __repr__(self):
        return "<HVoidData>"


"""
:var ~.HVoidData: A type of channels which are transporting just the synchronization token without any data
    (control channels, a "none" type of a handshake circuit).
"""
HVoidData = _HVoidData()


def HdlType_isVoid(t: HdlType):
    return t is HVoidData
