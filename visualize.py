import logging
from dataclasses import dataclass, field

from graphviz import Digraph

logger = logging.getLogger(__name__)

RANKDIRS = ('LR', 'TB', 'RL', 'BT')


@dataclass(frozen=True)
class GraphNode:
    label: str
    is_operator: bool = False


@dataclass
class TraceGraph:
    """nodes and unlabeled edges of a traced expression, both in insertion order"""

    nodes: list = field(default_factory=list)
    edges: list = field(default_factory=list)

    def add_node(self, label: str, is_operator=False) -> int:
        self.nodes.append(GraphNode(label, is_operator))
        return len(self.nodes) - 1

    def add_edge(self, src: int, dst: int):
        for index in (src, dst):
            if not 0 <= index < len(self.nodes):
                raise IndexError(f"no node with index {index}")
        self.edges.append((src, dst))

    def __len__(self):
        return len(self.nodes)


def trace(root, show_grad=False) -> TraceGraph:
    """
    flatten the history of root into a graph.
    edges run operand -> operator -> result. nothing is memoized: a node reached
    twice is added twice, so node indices follow the depth first (left before right) walk.
    """
    graph = TraceGraph()
    stack = [(root, None)]  # (node, index of the operator it feeds)
    while stack:
        v, consumer = stack.pop()
        index = graph.add_node(*v.describe(show_grad))
        if consumer is not None:
            graph.add_edge(index, consumer)
        if v._op is None:
            continue
        op_index = graph.add_node(v._op.value, is_operator=True)
        graph.add_edge(op_index, index)
        # right first so the left operand is popped and numbered first
        stack.extend((child, op_index) for child in reversed(v._prev))

    logger.debug("traced %d nodes and %d edges", len(graph.nodes), len(graph.edges))
    return graph


def _escape(label):
    return label.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\l')


def render_dot(graph: TraceGraph) -> str:
    """dot source for a traced graph: record shaped data nodes, bare operator nodes, no edge labels"""
    lines = ['digraph {']
    for index, node in enumerate(graph.nodes):
        style = '' if node.is_operator else 'shape=record'
        lines.append(f'    {index} [ label = "{_escape(node.label)}" {style}]')
    for src, dst in graph.edges:
        lines.append(f'    {src} -> {dst} [ ]')
    lines.append('}')
    return '\n'.join(lines) + '\n'


def draw_dot(root, filename='graph', format='png', rankdir='LR', save=False, show_grad=True):
    """visualize the traced graph of root with graphviz and optionally render it to a file"""
    if rankdir not in RANKDIRS:
        raise ValueError(f"rankdir must be one of {RANKDIRS}, got {rankdir!r}")
    graph = trace(root, show_grad=show_grad)
    dot = Digraph(format=format, filename=filename, graph_attr={'rankdir': rankdir})  # left to right by default
    for index, node in enumerate(graph.nodes):
        if node.is_operator:
            dot.node(name=str(index), label=node.label)
        else:
            dot.node(name=str(index), label=node.label, shape='record')
    for src, dst in graph.edges:
        dot.edge(str(src), str(dst))

    if save:
        path = dot.render()
        logger.debug("rendered graph to %s", path)

    return dot
