import numpy as np


class VariableNotFoundError(KeyError):
    """Raised when an evaluated Variable has no value in the bindings"""

    def __init__(self, name):
        super().__init__("variable '%s' was unspecified" % name)
        self.name = name


# lift a raw number to a Constant, leave Expressions untouched
def to_expression(value):
    if isinstance(value, Expression):
        return value
    return Constant(value)


# the numeric fields of power and trigonometric nodes hold plain numbers, a Constant is unwrapped
def to_number(value):
    if isinstance(value, Constant):
        return value.value
    return value


class Expression:
    """A mathematical expression, represented as an expression tree"""

    """
    Any concrete subclass of Expression should have these methods:
     - _evaluate(bindings: dict): the value of the tree, without error-state handling
     - derivative(): the time-derivative of the tree, as a new Expression
     - operation_count: the number of nodes in the tree
     - __eq__(other): tree-equality, check if other represents the same expression tree.
    """

    # central list of the operators
    OPERATOR_LIST = {"Addition": "+",
                     "Subtraction": "-",
                     "Multiplication": "*",
                     "Division": "/",
                     "Power": "**",
                     "Negation": "~"}
    OPERATIONS = {"+": np.add,
                  "-": np.subtract,
                  "*": np.multiply,
                  "/": np.divide,
                  "**": np.power,
                  "~": np.negative}

    # every node owns the cache used by smart_evaluate
    def __init__(self):
        self._evaluation_cache = {}

    # operator overloading:
    # this allows us to perform 'arithmetic' with expressions, and obtain another expression
    def __add__(self, other):
        return AdditionNode(self, other)

    def __sub__(self, other):
        return SubtractionNode(self, other)

    def __mul__(self, other):
        return MultiplicationNode(self, other)

    def __truediv__(self, other):
        return DivisionNode(self, other)

    def __pow__(self, exponent):
        return PowerNode(self, exponent)

    def __radd__(self, other):
        return AdditionNode(other, self)

    def __rsub__(self, other):
        return SubtractionNode(other, self)

    def __rmul__(self, other):
        return MultiplicationNode(other, self)

    def __rtruediv__(self, other):
        return DivisionNode(other, self)

    def __neg__(self):
        return NegationNode(self)

    # named versions of the operators
    def add(self, other):
        return self + other

    def subtract(self, other):
        return self - other

    def multiply(self, other):
        return self * other

    def divide(self, other):
        return self / other

    def raise_to_power(self, exponent):
        return self ** exponent

    # evaluate the expression with values for variables given by a dictionary
    # keys are variable names as strings with concrete values
    # floating point errors give inf or nan instead of raising
    def evaluate(self, bindings):
        with np.errstate(all="ignore"):
            return self._evaluate(bindings)

    def _evaluate(self, bindings):
        raise NotImplementedError("evaluation for the following expression was not possible: %r" % self)

    # evaluate, remembering the result for each distinct set of bindings
    # the key is the binding with its names in sorted order and exact number reprs
    def smart_evaluate(self, bindings):
        key = repr(sorted(bindings.items()))
        if key not in self._evaluation_cache:
            self._evaluation_cache[key] = self.evaluate(bindings)
        return self._evaluation_cache[key]

    def clear_cache(self):
        self._evaluation_cache.clear()

    # the time-derivative: a variable x has derivative dx
    def derivative(self):
        raise NotImplementedError("the following expression could not be differentiated: %r" % self)

    @property
    def operation_count(self):
        return 1


class Constant(Expression):
    """Represents a constant value"""

    def __init__(self, value):
        super().__init__()
        self.value = value

    def __eq__(self, other):
        if isinstance(other, Constant):
            return self.value == other.value
        else:
            return False

    def __repr__(self):
        return "Constant(%r)" % self.value

    def _evaluate(self, bindings):
        return self.value

    def derivative(self):
        return Constant(0)


class Variable(Expression):
    """Represents a variable that is looked up in the bindings"""

    def __init__(self, name: str):
        super().__init__()
        self.name = name

    def __eq__(self, other):
        if isinstance(other, Variable):
            return self.name == other.name
        else:
            return False

    def __repr__(self):
        return "Variable(%r)" % self.name

    def _evaluate(self, bindings):
        try:
            return bindings[self.name]
        except KeyError as e:
            raise VariableNotFoundError(self.name) from e

    def derivative(self):
        return Variable("d" + self.name)


class OperatorNode(Expression):
    """The base for an operator in a node."""

    def __init__(self, op_symbol: str):
        super().__init__()
        self.op_symbol = op_symbol
        self.operation = Expression.OPERATIONS[op_symbol]


class UnaryNode(OperatorNode):
    """A node in the expression tree representing a prefix unary operator"""

    def __init__(self, operand, op_symbol: str):
        super().__init__(op_symbol)
        self.operand = to_expression(operand)

    def __eq__(self, other):
        if type(self) == type(other):
            return self.operand == other.operand
        else:
            return False

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, self.operand)

    def _evaluate(self, bindings):
        return self.operation(self.operand._evaluate(bindings))

    @property
    def operation_count(self):
        return 1 + self.operand.operation_count


class NegationNode(UnaryNode):
    """Represents negation"""

    def __init__(self, operand):
        super().__init__(operand, Expression.OPERATOR_LIST["Negation"])

    def derivative(self):
        return NegationNode(self.operand.derivative())


class BinaryNode(OperatorNode):
    """A node in the expression tree representing a binary operator."""

    def __init__(self, lhs, rhs, op_symbol: str):
        super().__init__(op_symbol)
        self.lhs = to_expression(lhs)
        self.rhs = to_expression(rhs)

    def __eq__(self, other):
        if type(self) == type(other):
            return self.lhs == other.lhs and self.rhs == other.rhs
        else:
            return False

    def __repr__(self):
        return "%s(%r, %r)" % (type(self).__name__, self.lhs, self.rhs)

    def _evaluate(self, bindings):
        lvalue = self.lhs._evaluate(bindings)
        rvalue = self.rhs._evaluate(bindings)
        return self.operation(np.float64(lvalue), rvalue)

    @property
    def operation_count(self):
        return 1 + self.lhs.operation_count + self.rhs.operation_count


class AdditionNode(BinaryNode):
    """Represents the addition operator"""

    def __init__(self, lhs, rhs):
        super().__init__(lhs, rhs, Expression.OPERATOR_LIST["Addition"])

    # a constant term drops out, but only when it is a direct child
    def derivative(self):
        if isinstance(self.lhs, Constant):
            return self.rhs.derivative()
        if isinstance(self.rhs, Constant):
            return self.lhs.derivative()
        return AdditionNode(self.lhs.derivative(), self.rhs.derivative())


class SubtractionNode(BinaryNode):
    """Represents the subtraction operator"""

    def __init__(self, lhs, rhs):
        super().__init__(lhs, rhs, Expression.OPERATOR_LIST["Subtraction"])

    def derivative(self):
        if isinstance(self.lhs, Constant):
            return NegationNode(self.rhs.derivative())
        if isinstance(self.rhs, Constant):
            return self.lhs.derivative()
        return SubtractionNode(self.lhs.derivative(), self.rhs.derivative())


class MultiplicationNode(BinaryNode):
    """Represents the multiplication operator"""

    def __init__(self, lhs, rhs):
        super().__init__(lhs, rhs, Expression.OPERATOR_LIST["Multiplication"])

    # scaling by a constant child keeps the constant, otherwise the product rule
    def derivative(self):
        if isinstance(self.lhs, Constant):
            return MultiplicationNode(self.rhs.derivative(), self.lhs)
        if isinstance(self.rhs, Constant):
            return MultiplicationNode(self.lhs.derivative(), self.rhs)
        return AdditionNode(MultiplicationNode(self.lhs.derivative(), self.rhs),
                            MultiplicationNode(self.lhs, self.rhs.derivative()))


class DivisionNode(BinaryNode):
    """Represents the division operator"""

    def __init__(self, lhs, rhs):
        super().__init__(lhs, rhs, Expression.OPERATOR_LIST["Division"])

    # quotient rule as l'/r - l*r'*r**-2
    def derivative(self):
        return SubtractionNode(DivisionNode(self.lhs.derivative(), self.rhs),
                               MultiplicationNode(MultiplicationNode(self.lhs, self.rhs.derivative()),
                                                  PowerNode(self.rhs, -2)))


class PowerNode(OperatorNode):
    """Represents raising to a fixed numeric power"""

    def __init__(self, base, exponent):
        super().__init__(Expression.OPERATOR_LIST["Power"])
        self.base = to_expression(base)
        # the exponent is a plain number, never differentiated
        self.exponent = to_number(exponent)

    def __eq__(self, other):
        if isinstance(other, PowerNode):
            return self.base == other.base and self.exponent == other.exponent
        else:
            return False

    def __repr__(self):
        return "PowerNode(%r, %r)" % (self.base, self.exponent)

    def _evaluate(self, bindings):
        return self.operation(np.float64(self.base._evaluate(bindings)), self.exponent)

    def derivative(self):
        return MultiplicationNode(MultiplicationNode(self.exponent, PowerNode(self.base, self.exponent - 1)),
                                  self.base.derivative())

    @property
    def operation_count(self):
        return 1 + self.base.operation_count


class TrigonometricNode(Expression):
    """A sine or cosine of an operand, scaled by a fixed amplitude"""

    function = None

    def __init__(self, operand, amplitude=1):
        super().__init__()
        self.operand = to_expression(operand)
        self.amplitude = to_number(amplitude)

    def __eq__(self, other):
        if type(self) == type(other):
            return self.operand == other.operand and self.amplitude == other.amplitude
        else:
            return False

    def __repr__(self):
        return "%s(%r, %r)" % (type(self).__name__, self.operand, self.amplitude)

    def _evaluate(self, bindings):
        return self.amplitude * self.function(np.float64(self.operand._evaluate(bindings)))

    @property
    def operation_count(self):
        return 1 + self.operand.operation_count


class SineNode(TrigonometricNode):
    """Represents amplitude * sin(operand)"""

    function = np.sin

    def derivative(self):
        return MultiplicationNode(self.amplitude,
                                  MultiplicationNode(CosineNode(self.operand), self.operand.derivative()))


class CosineNode(TrigonometricNode):
    """Represents amplitude * cos(operand)"""

    function = np.cos

    def derivative(self):
        return MultiplicationNode(self.amplitude,
                                  MultiplicationNode(NegationNode(SineNode(self.operand)), self.operand.derivative()))
