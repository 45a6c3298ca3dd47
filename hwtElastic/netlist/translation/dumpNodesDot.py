import html
from itertools import zip_longest
from typing import Dict, List, Optional

import pydot

from hwt.pyUtils.typingFuture import override
from hwtElastic.netlist.analysis.hsNetlistAnalysisPass import HsNetlistAnalysisPass
from hwtElastic.netlist.context import HsNetlistCtx
from hwtElastic.netlist.hdlTypeVoid import HdlType_isVoid
from hwtElastic.netlist.nodes.channel import HsChannel
from hwtElastic.netlist.nodes.node import HsNetNode
from hwtElastic.netlist.nodes.opKind import HS_OP_KIND, HS_BUFFER_TYPE, HS_OP_KIND_isSpeculation, \
    HS_OP_KIND_isMemory
from hwtElastic.platform.fileUtils import OutputStreamGetter

COLOR_IO = "LightGreen"
COLOR_MEMORY = "LightBlue"
COLOR_BUFFER_OPAQUE = "Salmon"
COLOR_BUFFER_TRANSPARENT = "LightYellow"
COLOR_SPECULATION = "MediumSpringGreen"
COLOR_REGION_MEMBER = "red"

_IO_KINDS = (HS_OP_KIND.ENTRY, HS_OP_KIND.END, HS_OP_KIND.SOURCE, HS_OP_KIND.SINK)


class HsNetlistToGraphviz():
    """
    Generate a Graphviz (dot) diagram of the handshake netlist.
    Operations are grouped into clusters by basic block, members of speculative region have red border.
    """

    def __init__(self, name: str, netlist: HsNetlistCtx, addLegend: bool):
        self.name = name
        self.netlist = netlist
        self.graph = pydot.Dot(f'"{name}"')
        self.addLegend = addLegend
        self.obj_to_node: Dict[HsNetNode, pydot.Node] = {}
        self._blockCluster: Dict[int, pydot.Cluster] = {}

    def _constructLegend(self):
        legendTable = f"""<
<table border="0" cellborder="1" cellspacing="0">
  <tr><td bgcolor="{COLOR_IO:s}">ENTRY, END, SOURCE, SINK</td></tr>
  <tr><td bgcolor="{COLOR_MEMORY:s}">LOAD, STORE, MEM_INTERFACE</td></tr>
  <tr><td bgcolor="{COLOR_BUFFER_OPAQUE:s}">opaque BUFFER</td></tr>
  <tr><td bgcolor="{COLOR_BUFFER_TRANSPARENT:s}">transparent BUFFER</td></tr>
  <tr><td bgcolor="{COLOR_SPECULATION:s}">SPECULATOR, SAVE, COMMIT</td></tr>
  <tr><td color="{COLOR_REGION_MEMBER:s}">speculative region member</td></tr>
  <tr><td>dashed edge: control channel</td></tr>
</table>>"""
        return pydot.Node("legend", label=legendTable, style='filled', shape="plain")

    @staticmethod
    def _getColor(n: HsNetNode):
        bgcolor = "white"
        color = "black"
        kind = n.kind
        if kind in _IO_KINDS:
            bgcolor = COLOR_IO
        elif HS_OP_KIND_isMemory(kind):
            bgcolor = COLOR_MEMORY
        elif kind is HS_OP_KIND.BUFFER:
            if n.attrs["bufferType"] is HS_BUFFER_TYPE.OPAQUE:
                bgcolor = COLOR_BUFFER_OPAQUE
            else:
                bgcolor = COLOR_BUFFER_TRANSPARENT
        elif HS_OP_KIND_isSpeculation(kind):
            bgcolor = COLOR_SPECULATION

        if n.isSpeculativeRegionMember:
            color = COLOR_REGION_MEMBER
        return bgcolor, color

    def _getGraph(self, n: HsNetNode):
        c = self._blockCluster.get(n.block, None)
        if c is None:
            c = pydot.Cluster(f"block{n.block}", label=f'"block {n.block}"')
            self.graph.add_subgraph(c)
            self._blockCluster[n.block] = c
        return c

    @staticmethod
    def _formatLabel(n: HsNetNode) -> str:
        kind = n.kind
        if kind is HS_OP_KIND.OPERATOR:
            label = f"{n.attrs['operator']} {n._id:d}"
        else:
            label = f"{kind.name} {n._id:d}"
        if n.name is not None:
            label = f'{label:s} "{n.name:s}"'
        if kind is HS_OP_KIND.BUFFER:
            label = f"{label:s} {n.attrs['bufferType'].name.lower()}x{n.attrs['slots']}"
            if n.attrs.get("placeholder", False):
                label += " placeholder"
        elif kind is HS_OP_KIND.CONSTANT:
            label = f"{label:s} {n.attrs['value']}"
        if n.memRef is not None:
            label = f"{label:s} mem:{n.memRef:s}"
        return label

    def _node_from_HsNetNode(self, n: HsNetNode):
        try:
            return self.obj_to_node[n]
        except KeyError:
            pass

        g = self._getGraph(n)
        bgcolor, color = self._getColor(n)
        node = pydot.Node(f"n{n._id:d}", shape="plaintext", color=color, fontcolor="black")
        g.add_node(node)
        self.obj_to_node[n] = node

        inputRows: List[str] = []
        for i in n._inputs:
            name = i.name if i.name is not None else f"i{i.in_i:d}"
            inputRows.append(f"<td port='i{i.in_i:d}'>{html.escape(name):s}</td>")
        outputRows: List[str] = []
        for o in n._outputs:
            name = o.name if o.name is not None else f"o{o.out_i:d}"
            outputRows.append(f"<td port='o{o.out_i:d}'>{html.escape(name):s}</td>")

        border = "2" if n.isSpeculativeRegionMember else "0"
        buff = [f'''<
        <table bgcolor="{bgcolor:s}" color="{color:s}" border="{border:s}" cellborder="1" cellspacing="0">\n''']
        buff.append(f'            <tr><td colspan="2">{html.escape(self._formatLabel(n)):s}</td></tr>\n')
        for i, o in zip_longest(inputRows, outputRows, fillvalue="<td></td>"):
            buff.append(f"            <tr>{i:s}{o:s}</tr>\n")
        buff.append('        </table>>')
        node.set("label", "".join(buff))
        return node

    @staticmethod
    def _formatChannelLabel(ch: HsChannel) -> Optional[str]:
        parts = []
        if not HdlType_isVoid(ch._dtype):
            parts.append(f"{ch.width:d}b")
        if ch.combDelay is not None:
            parts.append(f"{ch.combDelay:g}ns")
        if not parts:
            return None
        return " ".join(parts)

    def construct(self):
        g = self.graph
        if self.addLegend:
            g.add_node(self._constructLegend())

        for n in sorted(self.netlist.nodes.values(), key=lambda n: n._id):
            self._node_from_HsNetNode(n)

        for ch in sorted(self.netlist.channels.values(), key=lambda ch: ch._id):
            src = self.obj_to_node[ch.getSrcNode()]
            dst = self.obj_to_node[ch.getDstNode()]
            attrs = {}
            label = self._formatChannelLabel(ch)
            if label is not None:
                attrs["label"] = f'"{label:s}"'
            if HdlType_isVoid(ch._dtype):
                attrs["style"] = "dashed"
            e = pydot.Edge(f"{src.get_name():s}:o{ch.out_i:d}", f"{dst.get_name():s}:i{ch.in_i:d}", **attrs)
            g.add_edge(e)

    def dumps(self):
        return self.graph.to_string()


class HsNetlistAnalysisPassDumpNodesDot(HsNetlistAnalysisPass):
    """
    Dump operations and channels in graphviz dot format using :class:`~.HsNetlistToGraphviz`
    """

    def __init__(self, outStreamGetter: OutputStreamGetter, addLegend: bool=True):
        super(HsNetlistAnalysisPassDumpNodesDot, self).__init__()
        self.outStreamGetter = outStreamGetter
        self.addLegend = addLegend

    @override
    def runOnHsNetlistImpl(self, netlist: HsNetlistCtx):
        name = netlist.label
        out, doClose = self.outStreamGetter(name)
        try:
            toGraphviz = HsNetlistToGraphviz(name, netlist, self.addLegend)
            toGraphviz.construct()
            out.write(toGraphviz.dumps())
        finally:
            if doClose:
                out.close()
