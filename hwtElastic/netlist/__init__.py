"""
HsNetlist is a graph of handshake operations (:mod:`hwtElastic.netlist.nodes`) connected by channels.

Every channel connects exactly a single output port to exactly a single input port (1:1),
fan-out is explicit using fork operation and fan-in using merge like operations.
Operations and channels are stored in the arena of :class:`hwtElastic.netlist.context.HsNetlistCtx`
under an integer id, cycles in the graph are legitimate (loops).

All mutations of the graph are performed using the primitives of the context and are journaled,
this allows each pass to either fully apply its changes or to roll them back.
"""
