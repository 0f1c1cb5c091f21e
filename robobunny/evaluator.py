"""
Expression Evaluator

Evaluates program expressions for one bunny. Evaluation never raises:
division by zero and malformed expressions yield 0.
"""

from typing import Union
import logging
import math

from .program import (
    Expr,
    Literal,
    AgentCoord,
    GetVar,
    Binary,
    Compare,
    Logic,
    Not,
    Axis,
    BinaryOp,
    CompareOp,
    LogicOp,
)
from .world import WorldState

logger = logging.getLogger(__name__)

Value = Union[int, float, bool, str]

# Returned for undefined arithmetic and malformed expressions
SENTINEL = 0

# Largest integer a double holds exactly; anything larger is kept as a float
MAX_SAFE_INT = 2 ** 53


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value) -> Union[int, float]:
    """Coerce a value to a bounded number for arithmetic."""
    if isinstance(value, bool):
        return int(value)
    if _is_number(value):
        return _normalize(value)
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0
        return _normalize(number)
    return 0


def to_int(value) -> int:
    """Coerce a value to an int (truncating), used for jump sizes and repeat counts."""
    number = to_number(value)
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return 0
    return int(number)


def truthy(value) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def _normalize(result) -> Union[int, float]:
    """
    Keep a result within double precision.

    Integers beyond MAX_SAFE_INT continue as floats, and integral floats
    within it collapse to int. NaN, infinities, complex results and
    values too large for a float yield SENTINEL.
    """
    if isinstance(result, complex):
        return SENTINEL
    if isinstance(result, int) and abs(result) > MAX_SAFE_INT:
        try:
            result = float(result)
        except OverflowError:
            return SENTINEL
    if isinstance(result, float):
        if math.isnan(result) or math.isinf(result):
            return SENTINEL
        if result.is_integer() and abs(result) <= MAX_SAFE_INT:
            return int(result)
    return result


def arithmetic(op: BinaryOp, left, right) -> Union[int, float]:
    """Apply an arithmetic operator to two values coerced to numbers."""
    a = to_number(left)
    b = to_number(right)

    try:
        if op == BinaryOp.ADD:
            result = a + b
        elif op == BinaryOp.SUB:
            result = a - b
        elif op == BinaryOp.MUL:
            result = a * b
        elif op == BinaryOp.DIV:
            result = a / b
        elif op == BinaryOp.POW:
            # Large exponents go through float so they overflow instead of hanging
            result = float(a) ** b if abs(b) > 64 else a ** b
        elif op == BinaryOp.MOD:
            # Truncating remainder: the result takes the sign of the dividend
            result = math.fmod(a, b)
        else:
            return SENTINEL
    except (ZeroDivisionError, OverflowError, ValueError):
        return SENTINEL

    return _normalize(result)


def _same_kind(left, right) -> bool:
    if _is_number(left) and _is_number(right):
        return True
    return type(left) is type(right) and isinstance(left, (bool, str))


def _compare(op: CompareOp, left, right) -> bool:
    # Strict policy: values of different kinds are never equal and never ordered
    if not _same_kind(left, right):
        logger.debug("Comparing %r with %r: type mismatch", left, right)
        return op == CompareOp.NEQ

    if op == CompareOp.EQ:
        return left == right
    elif op == CompareOp.NEQ:
        return left != right
    elif op == CompareOp.LT:
        return left < right
    elif op == CompareOp.LTE:
        return left <= right
    elif op == CompareOp.GT:
        return left > right
    elif op == CompareOp.GTE:
        return left >= right
    return False


def evaluate(expr: Expr, world: WorldState, agent_index: int) -> Value:
    """
    Evaluate an expression for one bunny.

    Coordinates are read from the bunny's live position, and variables
    from that bunny's own store only.

    Args:
        expr: Expression node (bare scalars are accepted as literals)
        world: World to read positions and variables from
        agent_index: Which bunny is evaluating

    Returns:
        A number, bool or string
    """
    if isinstance(expr, (bool, int, float, str)):
        return expr

    if isinstance(expr, Literal):
        return expr.value

    elif isinstance(expr, AgentCoord):
        if not 0 <= agent_index < len(world.agents):
            return SENTINEL
        agent = world.agents[agent_index]
        return agent.x if expr.axis == Axis.X else agent.y

    elif isinstance(expr, GetVar):
        if not 0 <= agent_index < len(world.variables):
            return SENTINEL
        return world.variables[agent_index].get(expr.name, 0)

    elif isinstance(expr, Binary):
        return arithmetic(
            expr.op,
            evaluate(expr.left, world, agent_index),
            evaluate(expr.right, world, agent_index),
        )

    elif isinstance(expr, Compare):
        return _compare(
            expr.op,
            evaluate(expr.left, world, agent_index),
            evaluate(expr.right, world, agent_index),
        )

    elif isinstance(expr, Logic):
        # Both sides are evaluated before combining (no short-circuit)
        left = truthy(evaluate(expr.left, world, agent_index))
        right = truthy(evaluate(expr.right, world, agent_index))
        if expr.op == LogicOp.AND:
            return left and right
        return left or right

    elif isinstance(expr, Not):
        return not truthy(evaluate(expr.operand, world, agent_index))

    logger.warning("Malformed expression skipped: %r", expr)
    return SENTINEL
