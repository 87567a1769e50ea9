import copy
import enum
import threading


class MalformedNode(ValueError):
    """a node that is neither a labelled data node nor an operator result"""


class Op(str, enum.Enum):
    """binary operators that can appear in a value's history"""

    ADD = '+'
    MUL = '*'


class Value:
    """
    scalar node storing its value, a display label and the operation that produced it.
    operators copy their operands into the history of the new node, so every
    intermediate is its own object even when the same expression is reused.
    """

    def __init__(self, data, label=None, _children=(), _op=None):
        if (_op is None) != (len(_children) == 0) or len(_children) not in (0, 2):
            raise MalformedNode(f"operator {_op!r} needs exactly two operands, got {len(_children)}")
        if _op is None and label is None:
            raise MalformedNode("a leaf value needs a label")
        self.data = float(data)
        self.grad = 0.  # display annotation, never computed here
        self.label = label
        self._op = Op(_op) if _op is not None else None
        self._prev = tuple(_children)

    @property
    def left(self):
        return self._prev[0] if self._prev else None

    @property
    def right(self):
        return self._prev[1] if self._prev else None

    @property
    def is_leaf(self) -> bool:
        return self._op is None

    def display(self, show_grad=False) -> str:
        """text shown for this node: a record for labelled nodes, the bare symbol otherwise"""
        return _describe(self, show_grad)[0]

    def describe(self, show_grad=False):
        """display text and whether it is a bare operator symbol, from one read of the label"""
        return _describe(self, show_grad)

    def __str__(self) -> str:
        return self.display()

    def __repr__(self) -> str:
        op = self._op.value if self._op is not None else None
        return f"Value(data={self.data}, label={self.label!r}, op={op!r})"

    def __add__(self, other):
        if not isinstance(other, (Value, ValueRef)):
            return NotImplemented
        return add(self, other)

    def __mul__(self, other):
        if not isinstance(other, (Value, ValueRef)):
            return NotImplemented
        return multiply(self, other)


class ValueRef:
    """
    shared handle to a single Value.
    operators keep the handle itself instead of copying it, so a ref placed in
    two spots of an expression is one node, and a grad or label written through
    it shows up in both places.
    """

    def __init__(self, value):
        if not isinstance(value, Value):
            raise TypeError(f"ValueRef wraps a Value, got {type(value).__name__}")
        self._value = value
        self._lock = threading.RLock()

    @property
    def value(self):
        """the wrapped node, for reading. write grad and label through the ref so they take the lock"""
        return self._value

    @property
    def data(self):
        return self._value.data

    @property
    def grad(self):
        return self._value.grad

    @grad.setter
    def grad(self, grad):
        self.update(grad=grad)

    @property
    def label(self):
        return self._value.label

    @label.setter
    def label(self, label):
        self.update(label=label)

    @property
    def _op(self):
        return self._value._op

    @property
    def _prev(self):
        return self._value._prev

    @property
    def left(self):
        return self._value.left

    @property
    def right(self):
        return self._value.right

    @property
    def is_leaf(self) -> bool:
        return self._value.is_leaf

    def update(self, grad=None, label=None):
        """set grad and/or label on the shared node"""
        with self._lock:
            if grad is not None:
                self._value.grad = float(grad)
            if label is not None:
                self._value.label = label

    def display(self, show_grad=False) -> str:
        return self.describe(show_grad)[0]

    def describe(self, show_grad=False):
        with self._lock:
            return _describe(self._value, show_grad)

    def __str__(self) -> str:
        return self.display()

    def __repr__(self) -> str:
        return f"ValueRef({self._value!r})"

    def __add__(self, other):
        if not isinstance(other, (Value, ValueRef)):
            return NotImplemented
        return add(self, other)

    def __mul__(self, other):
        if not isinstance(other, (Value, ValueRef)):
            return NotImplemented
        return multiply(self, other)


def _describe(node, show_grad):
    label = node.label
    if label is not None:
        if show_grad:
            return f"{{ {label}| data: {node.data:.4f} | grad {node.grad:.4f} }}", False
        return f"{{ {label}| data: {node.data:.4f} }}", False
    if node._op is not None:
        return node._op.value, True
    raise MalformedNode(f"node with data {node.data} has neither a label nor an operator")


def _clone(operand):
    """copy a value together with its whole history. refs are kept, not copied"""
    if isinstance(operand, ValueRef):
        return operand
    if not isinstance(operand, Value):
        raise TypeError(f"unsupported operand type: {type(operand).__name__}")
    root = copy.copy(operand)
    stack = [root]
    while stack:
        node = stack.pop()
        node._prev = tuple(child if isinstance(child, ValueRef) else copy.copy(child) for child in node._prev)
        stack.extend(child for child in node._prev if isinstance(child, Value))
    return root


def add(a, b):
    """a + b, recording copies of both operands"""
    left, right = _clone(a), _clone(b)
    return Value(left.data + right.data, _children=(left, right), _op=Op.ADD)


def multiply(a, b):
    """a * b, recording copies of both operands"""
    left, right = _clone(a), _clone(b)
    return Value(left.data * right.data, _children=(left, right), _op=Op.MUL)


def numerical_slope(f, x, h=0.0001):
    """
    estimate the slope of an expression with respect to one input by nudging it.
    f builds a fresh expression from a float and returns its output node.
    """
    if h == 0:
        raise ValueError("step h must be non-zero")
    return (f(x + h).data - f(x).data) / h
