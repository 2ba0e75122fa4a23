"""Successive time-derivatives of an expression and their evaluation.

A coordinate ``x`` has velocity ``dx``, acceleration ``ddx`` and so on. When an
acceleration is given as an Expression, its derivative refers to ``dddx``-style
names of *every* coordinate it depends on, so higher orders can only be
evaluated after all lower orders of all coupled coordinates are known.
"""


# the binding name of the order-th time-derivative of name, e.g. (x, 2) -> ddx
def derivative_key(name, order):
    return "d" * order + name


# [expression, expression', expression'', ...] with order + 1 entries
def derivative_chain(expression, order):
    if order < 0:
        raise ValueError("derivative order must be non-negative, got %d" % order)
    chain = [expression]
    for _ in range(order):
        chain.append(chain[-1].derivative())
    return chain


def evaluate_system(chains, bindings, base_order=2, memoize=False):
    """Evaluate coupled derivative chains level by level.

    chains maps a coordinate name to the chain of its base_order-th derivative.
    Before each level is evaluated, the values of the previous level are added to
    a copy of the bindings under their derivative names. Returns, for every name,
    the values of orders base_order, base_order + 1, ... in order.
    """
    bindings = dict(bindings)
    values = {name: [] for name in chains}
    depth = max((len(chain) for chain in chains.values()), default=0)
    for level in range(depth):
        for name, chain in chains.items():
            if level < len(chain):
                tree = chain[level]
                value = tree.smart_evaluate(bindings) if memoize else tree.evaluate(bindings)
                values[name].append(value)
        # only widen once the whole level is known, lower orders never see their own level
        for name in chains:
            if level < len(values[name]):
                bindings[derivative_key(name, base_order + level)] = values[name][level]
    return values


# single-coordinate version of evaluate_system
# chain[0] is the base_order-th derivative of name, its value is bound before chain[1] is evaluated
def evaluate_chain(chain, bindings, name, base_order=2, memoize=False):
    return evaluate_system({name: chain}, bindings, base_order, memoize)[name]
