"""
hwtElastic
==========

hwtElastic is a library with the whole-graph transformations of a compiler for elastic (latency insensitive) dataflow circuits.
The circuit is a graph of token passing operations connected by handshaked channels (valid/ready),
it is constructed by an external front end using :class:`hwtElastic.netlist.builder.HsNetlistBuilder`.

* :mod:`hwtElastic.netlist`: The circuit graph model (operations, channels, basic blocks) and its mutation primitives.

* :mod:`hwtElastic.netlist.analysis`: Analyses of the circuit. Cycle enumeration, combinational delay estimation,
  basic block dominance and reachability.

* :mod:`hwtElastic.netlist.transformation.bufferPlacement`: Buffer placement formulated as a mixed integer linear program.
  The buffers break the combinational cycles, fix the timing and keep the throughput of the circuit.

* :mod:`hwtElastic.netlist.transformation.speculation`: Insertion of speculator/save/commit units
  and the marking of the speculative region.

* :mod:`hwtElastic.platform`: Timing model of operations, configuration and the pass pipeline.
"""
