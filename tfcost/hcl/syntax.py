"""
Syntax tree for HCL native syntax.

The parser turns template files into these nodes. Structural nodes
(``HCLFile``, ``Body``, ``Block``, ``Attribute``) keep blocks and attributes
apart; expression nodes keep each construct distinct so the evaluator can
decide per kind what it resolves and what it leaves as a placeholder.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class Diagnostic:
    """A single syntax problem with its source position."""
    filename: str
    line: int
    column: int
    summary: str

    def __str__(self) -> str:
        return f"{self.filename}:{self.line},{self.column}: {self.summary}"


class Expression:
    """Base class for expression nodes."""


@dataclass(frozen=True)
class LiteralValue(Expression):
    """A literal number, string, bool or null.

    ``kind`` is one of ``"number"``, ``"string"``, ``"bool"`` or ``"null"``.
    """
    value: Any
    kind: str


@dataclass(frozen=True)
class TemplateDirective(Expression):
    """A ``%{ ... }`` template directive kept as raw source."""
    source: str


@dataclass(frozen=True)
class TemplateExpr(Expression):
    """A quoted string or heredoc split into literal and interpolated parts."""
    parts: Tuple[Expression, ...]


@dataclass(frozen=True)
class TraverseAttr:
    name: str


@dataclass(frozen=True)
class TraverseIndex:
    key: Union[int, float, str]


TraversalStep = Union[TraverseAttr, TraverseIndex]


@dataclass(frozen=True)
class ScopeTraversal(Expression):
    """A variable reference such as ``var.region`` or ``aws_vpc.main.id``."""
    root: str
    steps: Tuple[TraversalStep, ...] = ()


@dataclass(frozen=True)
class RelativeTraversal(Expression):
    """Attribute or index steps applied to a non-variable expression."""
    source: Expression
    steps: Tuple[TraversalStep, ...]


@dataclass(frozen=True)
class FunctionCall(Expression):
    name: str
    args: Tuple[Expression, ...] = ()
    expand_final: bool = False


@dataclass(frozen=True)
class ObjectConsKey(Expression):
    """Wrapper around the key expression of an object item."""
    wrapped: Expression


@dataclass(frozen=True)
class ObjectItem:
    key: ObjectConsKey
    value: Expression


@dataclass(frozen=True)
class ObjectCons(Expression):
    items: Tuple[ObjectItem, ...] = ()


@dataclass(frozen=True)
class TupleCons(Expression):
    items: Tuple[Expression, ...] = ()


@dataclass(frozen=True)
class Conditional(Expression):
    condition: Expression
    true_result: Expression
    false_result: Expression


@dataclass(frozen=True)
class BinaryOp(Expression):
    operator: str
    lhs: Expression
    rhs: Expression


@dataclass(frozen=True)
class UnaryOp(Expression):
    operator: str
    operand: Expression


@dataclass(frozen=True)
class Parenthesized(Expression):
    expression: Expression


@dataclass(frozen=True)
class IndexExpr(Expression):
    collection: Expression
    key: Expression


@dataclass(frozen=True)
class SplatExpr(Expression):
    """``source.*`` or ``source[*]`` followed by optional traversal steps."""
    source: Expression
    full: bool
    steps: Tuple[TraversalStep, ...] = ()


@dataclass(frozen=True)
class ForExpr(Expression):
    key_var: Optional[str]
    value_var: str
    collection: Expression
    key_result: Optional[Expression]
    value_result: Expression
    condition: Optional[Expression] = None
    grouped: bool = False


@dataclass(frozen=True)
class Attribute:
    name: str
    expression: Expression
    line: int = 0


@dataclass
class Body:
    attributes: Dict[str, Attribute] = field(default_factory=dict)
    blocks: List["Block"] = field(default_factory=list)


@dataclass
class Block:
    type: str
    labels: List[str]
    body: Body
    line: int = 0


@dataclass
class HCLFile:
    filename: str
    body: Body

    def blocks_of_type(self, block_type: str) -> List[Block]:
        """Return the top-level blocks with the given type, in source order."""
        return [block for block in self.body.blocks if block.type == block_type]
