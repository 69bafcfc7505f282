"""
Restricted expression evaluator.

Resolves the subset of expressions that matters for cost estimation
(literals, templates, variable references, objects, tuples and simple
conditionals) and degrades everything else to placeholder strings so a
template can still be estimated when parts of it cannot be resolved.
"""
import logging
from typing import Any, Dict, Mapping, Optional

from tfcost.domain.values import (
    ELIDED_FRAGMENT,
    UNSUPPORTED,
    Value,
    format_value,
    normalize_number,
    placeholder,
)
from tfcost.hcl.syntax import (
    BinaryOp,
    Conditional,
    Expression,
    FunctionCall,
    LiteralValue,
    ObjectCons,
    ObjectConsKey,
    ScopeTraversal,
    TemplateExpr,
    TraverseAttr,
    TraverseIndex,
    TupleCons,
)

logger = logging.getLogger(__name__)

VARIABLE_PREFIX = "var."
EQUALITY_OPERATORS = ("==", "!=")


class EvaluationError(Exception):
    """Raised when an expression cannot be evaluated into a value."""
    pass


def traversal_path(traversal: ScopeTraversal) -> str:
    """
    Render a traversal as a dotted path.

    Attribute steps join with ``.``, numeric index steps render as the
    number and string index steps as ``[key]``, so ``var.list[0]`` becomes
    ``var.list.0`` and ``each.value["a"]`` becomes ``each.value.[a]``.

    Args:
        traversal: Variable traversal node

    Returns:
        Dotted path string
    """
    segments = [traversal.root]
    for step in traversal.steps:
        if isinstance(step, TraverseAttr):
            segments.append(step.name)
        elif isinstance(step, TraverseIndex):
            if isinstance(step.key, str):
                segments.append(f"[{step.key}]")
            else:
                segments.append(format_value(normalize_number(step.key)))
    return ".".join(segments)


class ExpressionEvaluator:
    """
    Evaluates expression nodes against a read-only variable environment.

    The environment maps variable names (without the ``var.`` prefix) to
    values. Evaluators hold no mutable state, so one instance may be used
    from several threads.
    """

    def __init__(self, variables: Optional[Mapping[str, Any]] = None):
        """
        Initialize evaluator.

        Args:
            variables: Resolved variable environment
        """
        self.variables: Mapping[str, Any] = variables if variables is not None else {}

    def evaluate(self, node: Expression) -> Value:
        """
        Evaluate an expression.

        Args:
            node: Expression node

        Returns:
            Evaluated value; unresolved parts are ``Placeholder`` strings

        Raises:
            EvaluationError: If the expression kind is not supported
        """
        if isinstance(node, LiteralValue):
            return self._literal(node)
        if isinstance(node, TemplateExpr):
            return self._template(node)
        if isinstance(node, ScopeTraversal):
            return self._lookup(traversal_path(node))
        if isinstance(node, FunctionCall):
            return placeholder(f"function:{node.name}")
        if isinstance(node, ObjectCons):
            return self._object(node)
        if isinstance(node, TupleCons):
            return self._tuple(node)
        if isinstance(node, Conditional):
            if self._condition(node.condition):
                return self.evaluate(node.true_result)
            return self.evaluate(node.false_result)
        raise EvaluationError(f"unsupported expression type: {type(node).__name__}")

    def evaluate_attributes(self, attributes: Mapping[str, Any]) -> Dict[str, Value]:
        """
        Evaluate a body's attributes, omitting those that fail.

        Args:
            attributes: Attribute name to ``Attribute`` node

        Returns:
            Attribute name to value
        """
        values: Dict[str, Value] = {}
        for name, attribute in attributes.items():
            try:
                values[name] = self.evaluate(attribute.expression)
            except EvaluationError as error:
                logger.debug("Skipping attribute %s (line %s): %s", name, attribute.line, error)
        return values

    def _literal(self, node: LiteralValue) -> Value:
        if node.kind == "number":
            return normalize_number(node.value)
        if node.kind == "string":
            return str(node.value)
        if node.kind == "bool":
            return bool(node.value)
        raise EvaluationError(f"{node.kind} literal has no value")

    def _template(self, node: TemplateExpr) -> Value:
        """
        Render a template as a string.

        A template that is only ``"${var.x}"`` yields the display text of x
        rather than x itself, so it is kept as an attribute instead of being
        dropped as an unsupported wrapped template.
        """
        if len(node.parts) == 1 and isinstance(node.parts[0], LiteralValue):
            return format_value(self._literal(node.parts[0]))

        fragments = []
        for part in node.parts:
            if isinstance(part, LiteralValue):
                fragments.append(format_value(self._literal(part)))
            elif isinstance(part, ScopeTraversal):
                fragments.append(format_value(self._lookup(traversal_path(part))))
            else:
                fragments.append(ELIDED_FRAGMENT)
        return "".join(fragments)

    def _lookup(self, path: str) -> Value:
        name = path[len(VARIABLE_PREFIX):] if path.startswith(VARIABLE_PREFIX) else path
        if name in self.variables:
            return self.variables[name]
        return placeholder(path)

    def _object(self, node: ObjectCons) -> Dict[str, Value]:
        result: Dict[str, Value] = {}
        for item in node.items:
            key = self._object_key(item.key)
            if key is None:
                logger.debug("Skipping object item with unsupported key %r", item.key)
                continue
            try:
                result[key] = self.evaluate(item.value)
            except EvaluationError:
                result[key] = UNSUPPORTED
        return result

    def _object_key(self, node: Expression) -> Optional[str]:
        if isinstance(node, ObjectConsKey):
            node = node.wrapped
        if isinstance(node, LiteralValue) and node.kind in ("string", "number", "bool"):
            return format_value(self._literal(node))
        if isinstance(node, ScopeTraversal):
            return traversal_path(node)
        if isinstance(node, TemplateExpr) and len(node.parts) == 1 and isinstance(node.parts[0], LiteralValue):
            return format_value(self._literal(node.parts[0]))
        return None

    def _tuple(self, node: TupleCons) -> list:
        items = []
        for element in node.items:
            try:
                items.append(self.evaluate(element))
            except EvaluationError as error:
                logger.debug("Dropping tuple element: %s", error)
        return items

    def _condition(self, node: Expression) -> bool:
        if isinstance(node, LiteralValue) and node.kind == "bool":
            return bool(node.value)
        if isinstance(node, BinaryOp):
            if node.operator not in EQUALITY_OPERATORS:
                raise EvaluationError(f"unsupported operator in condition: {node.operator}")
            equal = format_value(self.evaluate(node.lhs)) == format_value(self.evaluate(node.rhs))
            return equal if node.operator == "==" else not equal
        raise EvaluationError(f"unsupported condition type: {type(node).__name__}")
