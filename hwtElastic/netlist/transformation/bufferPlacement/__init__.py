"""
Buffer placement for handshake circuits.

:see: :class:`hwtElastic.netlist.transformation.bufferPlacement.bufferPlacement.HsNetlistPassBufferPlacement`
    for the optimization based placement and
    :class:`hwtElastic.netlist.transformation.bufferPlacement.manualBuffers.HsNetlistPassInsertBuffers`
    for the manual insertion.
"""
