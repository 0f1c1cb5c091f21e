"""
Program Model and Block Codec

Defines the node types of a RoboBunny block program and converts them
to and from the JSON emitted by the visual block editor.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import logging

logger = logging.getLogger(__name__)


class JumpKind(Enum):
    """Movement actions."""
    F_JUMP = "F_Jump"    # Forward N cells
    FR_JUMP = "FR_Jump"  # Forward 1 cell, then right N cells
    FL_JUMP = "FL_Jump"  # Forward 1 cell, then left N cells


class TurnDirection(Enum):
    """Relative turns, in quarter turns clockwise."""
    RIGHT = 1
    BACK = 2
    LEFT = 3


class Axis(Enum):
    """Coordinate axes readable from an expression."""
    X = "bunny_x"
    Y = "bunny_y"


class BinaryOp(Enum):
    """Arithmetic operators."""
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    POW = "POW"
    MOD = "MOD"


class CompareOp(Enum):
    """Comparison operators."""
    EQ = "EQ"
    NEQ = "NEQ"
    LT = "LT"
    LTE = "LTE"
    GT = "GT"
    GTE = "GTE"


class LogicOp(Enum):
    """Boolean connectives. Both operands are always evaluated."""
    AND = "AND"
    OR = "OR"


# ---------- Expressions ----------

@dataclass
class Literal:
    value: Union[int, float, bool, str] = 0


@dataclass
class AgentCoord:
    axis: Axis = Axis.X


@dataclass
class GetVar:
    name: str = ""


@dataclass
class Binary:
    op: BinaryOp
    left: "Expr"
    right: "Expr"


@dataclass
class Compare:
    op: CompareOp
    left: "Expr"
    right: "Expr"


@dataclass
class Logic:
    op: LogicOp
    left: "Expr"
    right: "Expr"


@dataclass
class Not:
    operand: "Expr"


@dataclass
class UnknownExpr:
    """An expression the parser did not recognize. Evaluates to 0."""
    raw: Any = None


Expr = Union[Literal, AgentCoord, GetVar, Binary, Compare, Logic, Not, UnknownExpr]


# ---------- Statements ----------

@dataclass
class Jump:
    kind: JumpKind = JumpKind.F_JUMP
    amount: Union[int, Expr] = 1


@dataclass
class Turn:
    direction: TurnDirection = TurnDirection.RIGHT


@dataclass
class SetVar:
    name: str
    value: Expr


@dataclass
class ChangeVar:
    name: str
    delta: Expr


@dataclass
class If:
    condition: Expr
    then_body: List["Node"] = field(default_factory=list)
    else_body: List["Node"] = field(default_factory=list)


@dataclass
class While:
    condition: Expr
    body: List["Node"] = field(default_factory=list)


@dataclass
class Repeat:
    times: Union[int, Expr] = 1
    body: List["Node"] = field(default_factory=list)


@dataclass
class UnknownNode:
    """A block the parser did not recognize. Skipped at run time."""
    kind: str = ""
    raw: Any = None


Node = Union[Jump, Turn, SetVar, ChangeVar, If, While, Repeat, UnknownNode]

ACTION_TYPES = (Jump, Turn, SetVar, ChangeVar)
CONTROL_TYPES = (If, While, Repeat)
NODE_TYPES = ACTION_TYPES + CONTROL_TYPES + (UnknownNode,)


# ---------- Parsing ----------

_BINARY_ALIASES = {
    "ADD": BinaryOp.ADD,
    "SUB": BinaryOp.SUB,
    "MINUS": BinaryOp.SUB,
    "MUL": BinaryOp.MUL,
    "MULTIPLY": BinaryOp.MUL,
    "DIV": BinaryOp.DIV,
    "DIVIDE": BinaryOp.DIV,
    "POW": BinaryOp.POW,
    "POWER": BinaryOp.POW,
    "MOD": BinaryOp.MOD,
    "MODULO": BinaryOp.MOD,
}

_TURN_ALIASES = {
    "right": TurnDirection.RIGHT,
    "left": TurnDirection.LEFT,
    "back": TurnDirection.BACK,
    "右": TurnDirection.RIGHT,
    "左": TurnDirection.LEFT,
    "後": TurnDirection.BACK,
}

_LITERAL_TYPES = ("Number", "Boolean", "String")


def _is_scalar(data: Any) -> bool:
    return isinstance(data, (bool, int, float, str))


def parse_expression(data: Any) -> Expr:
    """Parse an editor expression (a bare scalar or a typed dict)."""
    if _is_scalar(data):
        return Literal(data)
    if not isinstance(data, dict):
        return UnknownExpr(data)

    kind = data.get("type")

    if kind in _LITERAL_TYPES:
        value = data.get("value", 0)
        return Literal(value) if _is_scalar(value) else UnknownExpr(data)

    elif kind == "Get":
        try:
            return AgentCoord(Axis(data.get("name")))
        except ValueError:
            return UnknownExpr(data)

    elif kind == "GetVar":
        return GetVar(str(data.get("name", "")))

    elif kind == "Binary":
        op = _BINARY_ALIASES.get(str(data.get("op", "")).upper())
        if op is None:
            return UnknownExpr(data)
        return Binary(op, parse_expression(data.get("left")), parse_expression(data.get("right")))

    elif kind == "Compare":
        try:
            op = CompareOp(str(data.get("op", "")).upper())
        except ValueError:
            return UnknownExpr(data)
        return Compare(op, parse_expression(data.get("left")), parse_expression(data.get("right")))

    elif kind == "Logic":
        try:
            op = LogicOp(str(data.get("op", "")).upper())
        except ValueError:
            return UnknownExpr(data)
        return Logic(op, parse_expression(data.get("left")), parse_expression(data.get("right")))

    elif kind == "Not":
        return Not(parse_expression(data.get("child")))

    return UnknownExpr(data)


def _parse_amount(data: Any) -> Union[int, Expr]:
    """Jump amounts and repeat counts: a plain int stays an int."""
    if isinstance(data, int) and not isinstance(data, bool):
        return data
    if data is None:
        return 1
    return parse_expression(data)


def parse_node(data: Any) -> Node:
    """Parse a single editor block into a program node."""
    if not isinstance(data, dict):
        return UnknownNode(kind=type(data).__name__, raw=data)

    kind = data.get("type")

    try:
        jump_kind = JumpKind(kind)
    except ValueError:
        jump_kind = None

    if jump_kind is not None:
        return Jump(jump_kind, _parse_amount(data.get("value")))

    elif kind == "Turn":
        direction = _TURN_ALIASES.get(str(data.get("value", "")).lower())
        if direction is None:
            return UnknownNode(kind=kind, raw=data)
        return Turn(direction)

    elif kind == "SetVar":
        return SetVar(str(data.get("name", "")), parse_expression(data.get("value", 0)))

    elif kind == "ChangeVar":
        return ChangeVar(str(data.get("name", "")), parse_expression(data.get("delta", 1)))

    elif kind == "If":
        return If(
            condition=parse_expression(data.get("condition")),
            then_body=parse_program(data.get("then")),
            else_body=parse_program(data.get("else")),
        )

    elif kind == "While":
        return While(
            condition=parse_expression(data.get("condition")),
            body=parse_program(data.get("body")),
        )

    elif kind == "Repeat":
        # Editor blocks carry "value"/"children"; AST nodes carry "times"/"body"
        times = data.get("times", data.get("value"))
        body = data.get("body", data.get("children"))
        return Repeat(times=_parse_amount(times), body=parse_program(body))

    return UnknownNode(kind=str(kind), raw=data)


def parse_program(data: Any) -> List[Node]:
    """
    Parse a list of editor blocks.

    Anything that is not a list parses as an empty program. Unrecognized
    blocks become UnknownNode entries rather than errors.
    """
    if not isinstance(data, list):
        return []
    return [parse_node(item) for item in data]


def ensure_program(program: Any) -> List[Node]:
    """Accept either parsed nodes or editor JSON (or a mix) and return nodes."""
    if program is None:
        return []
    if not isinstance(program, (list, tuple)):
        return []
    return [item if isinstance(item, NODE_TYPES) else parse_node(item) for item in program]


# ---------- Serialization ----------

_TURN_NAMES = {
    TurnDirection.RIGHT: "right",
    TurnDirection.LEFT: "left",
    TurnDirection.BACK: "back",
}


def expression_to_data(expr: Expr) -> Any:
    """Convert an expression back to editor JSON."""
    if isinstance(expr, Literal):
        if isinstance(expr.value, bool):
            return {"type": "Boolean", "value": expr.value}
        if isinstance(expr.value, str):
            return {"type": "String", "value": expr.value}
        return {"type": "Number", "value": expr.value}
    elif isinstance(expr, AgentCoord):
        return {"type": "Get", "name": expr.axis.value}
    elif isinstance(expr, GetVar):
        return {"type": "GetVar", "name": expr.name}
    elif isinstance(expr, (Binary, Compare, Logic)):
        return {
            "type": type(expr).__name__,
            "op": expr.op.value,
            "left": expression_to_data(expr.left),
            "right": expression_to_data(expr.right),
        }
    elif isinstance(expr, Not):
        return {"type": "Not", "child": expression_to_data(expr.operand)}
    return expr.raw


def _amount_to_data(amount: Union[int, Expr]) -> Any:
    if isinstance(amount, int):
        return amount
    return expression_to_data(amount)


def node_to_data(node: Node) -> Any:
    """Convert a program node back to editor JSON."""
    if isinstance(node, Jump):
        return {"type": node.kind.value, "value": _amount_to_data(node.amount)}
    elif isinstance(node, Turn):
        return {"type": "Turn", "value": _TURN_NAMES[node.direction]}
    elif isinstance(node, SetVar):
        return {"type": "SetVar", "name": node.name, "value": expression_to_data(node.value)}
    elif isinstance(node, ChangeVar):
        return {"type": "ChangeVar", "name": node.name, "delta": expression_to_data(node.delta)}
    elif isinstance(node, If):
        return {
            "type": "If",
            "condition": expression_to_data(node.condition),
            "then": program_to_data(node.then_body),
            "else": program_to_data(node.else_body),
        }
    elif isinstance(node, While):
        return {
            "type": "While",
            "condition": expression_to_data(node.condition),
            "body": program_to_data(node.body),
        }
    elif isinstance(node, Repeat):
        return {
            "type": "Repeat",
            "times": _amount_to_data(node.times),
            "body": program_to_data(node.body),
        }
    return node.raw


def program_to_data(nodes: List[Node]) -> List[Any]:
    """Convert a program back to a list of editor blocks."""
    return [node_to_data(node) for node in nodes]


# ---------- Editor helpers ----------

def count_blocks(nodes: List[Node]) -> int:
    """Count blocks the way the editor counts them against a block limit."""
    total = 0
    for node in nodes:
        total += 1
        if isinstance(node, If):
            total += count_blocks(node.then_body) + count_blocks(node.else_body)
        elif isinstance(node, (While, Repeat)):
            total += count_blocks(node.body)
    return total


def flatten_program(nodes: List[Node], limit: Optional[int] = None) -> List[Node]:
    """
    Flatten a program for single-step mode.

    Repeat blocks with a literal count are unrolled. Blocks whose effect
    depends on run-time state (If, While, Repeat with an expression count)
    cannot be unrolled ahead of time and are dropped.

    Args:
        nodes: Program to flatten
        limit: Maximum number of actions to produce (None for no cap)

    Returns:
        List of action nodes only, at most `limit` long
    """
    flat: List[Node] = []
    for node in nodes:
        if limit is not None and len(flat) >= limit:
            break
        if isinstance(node, Repeat) and isinstance(node.times, int):
            body = flatten_program(node.body, limit)
            if not body:
                continue
            for _ in range(max(0, node.times)):
                flat.extend(body)
                if limit is not None and len(flat) >= limit:
                    break
        elif isinstance(node, ACTION_TYPES):
            flat.append(node)
        else:
            logger.warning("Step mode cannot unroll %s block; skipped", type(node).__name__)

    if limit is not None:
        del flat[limit:]
    return flat


# Example programs for the sample map (bunny starts at 10,18 facing up)
SAMPLE_PROGRAMS: Dict[str, List[Dict[str, Any]]] = {
    "straight": [
        {"type": "F_Jump", "value": 2},
        {"type": "F_Jump", "value": 2},
        {"type": "F_Jump", "value": 2},
        {"type": "F_Jump", "value": 2},
        {"type": "F_Jump", "value": 2},
    ],

    "repeat": [
        {"type": "Repeat", "times": 5, "body": [
            {"type": "F_Jump", "value": 2},
        ]},
    ],

    "zigzag": [
        {"type": "F_Jump", "value": 2},
        {"type": "FL_Jump", "value": 2},
        {"type": "FR_Jump", "value": 2},
        {"type": "FR_Jump", "value": 2},
        {"type": "FL_Jump", "value": 2},
    ],

    "while_y": [
        {"type": "While",
         "condition": {"type": "Compare", "op": "GT",
                       "left": {"type": "Get", "name": "bunny_y"}, "right": 8},
         "body": [
             {"type": "F_Jump", "value": 2},
             {"type": "ChangeVar", "name": "hops", "delta": 1},
         ]},
    ],

    "runaway": [
        {"type": "While", "condition": {"type": "Boolean", "value": True}, "body": []},
    ],
}
