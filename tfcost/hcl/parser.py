"""
HCL native syntax parser built on python-hcl2.

``hcl2.parses_to_tree`` produces the raw lark parse tree for a template;
``_SyntaxBuilder`` turns that tree into the typed nodes in ``syntax``.
``parse_source`` parses a whole file and ``parse_expression`` parses a
standalone expression. Syntax problems are reported as ``HCLSyntaxError``
carrying one ``Diagnostic`` per problem.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import hcl2
from hcl2.utils import HEREDOC_PATTERN, HEREDOC_TRIM_PATTERN, process_escape_sequences
from lark import Discard, Token, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from tfcost.hcl.syntax import (
    Attribute,
    BinaryOp,
    Block,
    Body,
    Conditional,
    Diagnostic,
    Expression,
    ForExpr,
    FunctionCall,
    HCLFile,
    IndexExpr,
    LiteralValue,
    ObjectCons,
    ObjectConsKey,
    ObjectItem,
    Parenthesized,
    RelativeTraversal,
    ScopeTraversal,
    SplatExpr,
    TemplateDirective,
    TemplateExpr,
    TraverseAttr,
    TraverseIndex,
    TupleCons,
    UnaryOp,
)

logger = logging.getLogger(__name__)

# Attribute name used to wrap standalone expressions into a parseable body.
EXPRESSION_ATTRIBUTE = "__expression__"

_LITERAL_NAMES = {True: "true", False: "false", None: "null"}


class HCLSyntaxError(Exception):
    """Raised when template source is not valid HCL native syntax."""

    def __init__(self, diagnostics: List[Diagnostic]):
        self.diagnostics = list(diagnostics)
        super().__init__("; ".join(str(diagnostic) for diagnostic in self.diagnostics))


@dataclass(frozen=True)
class _BracketIndex:
    key: Expression


@dataclass(frozen=True)
class _ForCondition:
    expression: Expression


def _describe(error: UnexpectedInput) -> str:
    if isinstance(error, UnexpectedEOF):
        return "Unexpected end of input"
    if isinstance(error, UnexpectedCharacters):
        return f"Invalid character {error.char!r}"
    if isinstance(error, UnexpectedToken):
        if error.token.type == "$END":
            return "Unexpected end of input"
        if error.token.type == "NL_OR_COMMENT":
            return "Unexpected newline"
        return f"Unexpected token {str(error.token).strip()!r}"
    return "Invalid syntax"


def _diagnostic_from(error: UnexpectedInput, filename: str, column_offset: int = 0) -> Diagnostic:
    line = getattr(error, "line", None)
    column = getattr(error, "column", None)
    line = line if isinstance(line, int) and line > 0 else 1
    column = column if isinstance(column, int) and column > 0 else 1
    if line == 1:
        column = max(column - column_offset, 1)
    return Diagnostic(filename, line, column, _describe(error))


def _nodes(children) -> list:
    """Drop punctuation tokens, keeping transformed children."""
    return [child for child in children if child is not None and not isinstance(child, Token)]


def _name(child) -> str:
    if isinstance(child, LiteralValue):
        return _LITERAL_NAMES[child.value]
    return str(child)


def _heredoc_content(text: str) -> str:
    """
    Extract the content of a heredoc token.

    Every content line keeps its trailing newline; the closing marker line
    is not part of the content. ``<<-`` heredocs drop the smallest leading
    indentation of their non-blank lines.
    """
    trimmed = text.startswith("<<-")
    match = (HEREDOC_TRIM_PATTERN if trimmed else HEREDOC_PATTERN).match(text)
    if not match:
        return ""
    body = match.group(2).replace("\r\n", "\n")
    lines = body.split("\n")[:-1]
    if trimmed:
        indents = [len(line) - len(line.lstrip(" \t")) for line in lines if line.strip()]
        strip_width = min(indents) if indents else 0
        lines = [line[strip_width:] for line in lines]
    return "".join(line + "\n" for line in lines)


class _SyntaxBuilder(Transformer):
    """Transforms python-hcl2 parse trees into syntax nodes."""

    def __init__(self, filename: str, text: str):
        super().__init__()
        self.filename = filename
        self.text = text
        self.diagnostics: List[Diagnostic] = []

    # Structure

    def start(self, children):
        return children[0]

    def new_line_or_comment(self, children):
        return Discard

    def body(self, children) -> Body:
        body = Body()
        for item in children:
            if isinstance(item, Attribute):
                if item.name in body.attributes:
                    previous = body.attributes[item.name]
                    self._error(
                        item.line, 1,
                        f"Attribute redefined: {item.name!r} was already set at line {previous.line}",
                    )
                    continue
                body.attributes[item.name] = item
            elif isinstance(item, Block):
                body.blocks.append(item)
        return body

    @v_args(meta=True)
    def attribute(self, meta, children) -> Attribute:
        name, expression = children[0], children[-1]
        return Attribute(_name(name), expression, meta.line)

    @v_args(meta=True)
    def block(self, meta, children) -> Block:
        parts = [child for child in children if not (isinstance(child, Token) and child.type in ("LBRACE", "RBRACE"))]
        block_type, labels, body = parts[0], parts[1:-1], parts[-1]
        return Block(_name(block_type), [self._label(label, meta.line) for label in labels], body, meta.line)

    # Names and literals

    def identifier(self, children) -> Token:
        return children[0]

    def keyword(self, children) -> Token:
        return children[0]

    def literal_value(self, children) -> LiteralValue:
        text = str(children[0])
        if text == "null":
            return LiteralValue(None, "null")
        return LiteralValue(text == "true", "bool")

    def int_lit(self, children) -> LiteralValue:
        return LiteralValue(float(children[0]), "number")

    def float_lit(self, children) -> LiteralValue:
        return LiteralValue(float(children[0]), "number")

    # Templates

    def string(self, children) -> TemplateExpr:
        parts: List[Expression] = []
        for part in _nodes(children):
            if isinstance(part, str) and parts and isinstance(parts[-1], LiteralValue) and parts[-1].kind == "string":
                parts[-1] = LiteralValue(parts[-1].value + part, "string")
            elif isinstance(part, str):
                parts.append(LiteralValue(part, "string"))
            else:
                parts.append(part)
        if not parts:
            parts.append(LiteralValue("", "string"))
        return TemplateExpr(tuple(parts))

    def string_part(self, children):
        part = children[0]
        if not isinstance(part, Token):
            return part
        if part.type in ("ESCAPED_INTERPOLATION", "ESCAPED_DIRECTIVE"):
            return str(part)[1:]
        return process_escape_sequences(str(part))

    def interpolation(self, children) -> Expression:
        return _nodes(children)[0]

    @v_args(meta=True)
    def _directive(self, meta, children) -> TemplateDirective:
        source = self.text[meta.start_pos:meta.end_pos]
        return TemplateDirective(source[2:-1].strip().strip("~").strip())

    template_if_start = _directive
    template_else = _directive
    template_endif = _directive
    template_for_start = _directive
    template_endfor = _directive

    def template_string(self, children) -> TemplateExpr:
        return TemplateExpr((LiteralValue(str(children[0])[2:-2], "string"),))

    def heredoc_template(self, children) -> TemplateExpr:
        return TemplateExpr((LiteralValue(_heredoc_content(str(children[0])), "string"),))

    heredoc_template_trim = heredoc_template

    # Terms and traversals

    def expr_term(self, children) -> Expression:
        if isinstance(children[0], Token) and children[0].type == "LPAR":
            return Parenthesized(_nodes(children)[0])
        term = children[0]
        if isinstance(term, Token):
            return ScopeTraversal(str(term))
        return term

    def get_attr(self, children) -> TraverseAttr:
        return TraverseAttr(_name(children[-1]))

    def short_index(self, children) -> TraverseIndex:
        return TraverseIndex(int(children[-1]))

    def braces_index(self, children) -> _BracketIndex:
        return _BracketIndex(_nodes(children)[0])

    def get_attr_expr_term(self, children) -> Expression:
        source, step = children
        return self._traverse(source, step)

    def index_expr_term(self, children) -> Expression:
        source, index = children
        if isinstance(index, TraverseIndex):
            return self._traverse(source, index)
        literal_key = self._literal_key(index.key)
        if literal_key is not None and isinstance(source, (ScopeTraversal, RelativeTraversal, SplatExpr)):
            return self._traverse(source, TraverseIndex(literal_key))
        return IndexExpr(source, index.key)

    def attr_splat(self, children):
        return self._splat_steps(children)

    def full_splat(self, children):
        return self._splat_steps(children)

    def attr_splat_expr_term(self, children) -> SplatExpr:
        return SplatExpr(children[0], full=False, steps=children[1])

    def full_splat_expr_term(self, children) -> SplatExpr:
        return SplatExpr(children[0], full=True, steps=children[1])

    # Collections and calls

    def function_call(self, children) -> FunctionCall:
        names = [str(child) for child in children if isinstance(child, Token) and child.type == "NAME"]
        arguments = [child for child in children if isinstance(child, tuple)]
        name = "::".join(names)
        if not arguments:
            return FunctionCall(name)
        args, expand_final = arguments[0]
        return FunctionCall(name, tuple(args), expand_final)

    def arguments(self, children):
        expand_final = any(isinstance(child, Token) and child.type == "ELLIPSIS" for child in children)
        return _nodes(children), expand_final

    def tuple(self, children) -> TupleCons:
        return TupleCons(tuple(_nodes(children)))

    def object(self, children) -> ObjectCons:
        return ObjectCons(tuple(_nodes(children)))

    def object_elem(self, children) -> ObjectItem:
        key, value = _nodes(children)
        return ObjectItem(key, value)

    def object_elem_key(self, children) -> ObjectConsKey:
        key = children[0]
        if isinstance(key, Token):
            return ObjectConsKey(ScopeTraversal(str(key)))
        return ObjectConsKey(key)

    # Operators

    def conditional(self, children) -> Conditional:
        condition, true_result, false_result = _nodes(children)
        return Conditional(condition, true_result, false_result)

    def binary_operator(self, children) -> str:
        # Newlines before an operator are folded into its token.
        return str(children[0]).split()[-1]

    def binary_term(self, children):
        operator, rhs = _nodes(children)
        return operator, rhs

    def binary_op(self, children) -> BinaryOp:
        lhs, (operator, rhs) = _nodes(children)
        return BinaryOp(operator, lhs, rhs)

    def unary_op(self, children) -> Expression:
        operator, operand = children
        if str(operator) == "-" and isinstance(operand, LiteralValue) and operand.kind == "number":
            return LiteralValue(-operand.value, "number")
        return UnaryOp(str(operator), operand)

    # For expressions

    def for_intro(self, children):
        names = [str(child) for child in children if isinstance(child, Token) and child.type == "NAME"]
        collection = _nodes(children)[-1]
        if len(names) == 2:
            return names[0], names[1], collection
        return None, names[0], collection

    def for_cond(self, children) -> _ForCondition:
        return _ForCondition(_nodes(children)[0])

    def for_tuple_expr(self, children) -> ForExpr:
        intro, value_result, *rest = _nodes(children)
        key_var, value_var, collection = intro
        condition = rest[0].expression if rest else None
        return ForExpr(key_var, value_var, collection, None, value_result, condition)

    def for_object_expr(self, children) -> ForExpr:
        intro, key_result, value_result, *rest = _nodes(children)
        key_var, value_var, collection = intro
        grouped = any(isinstance(child, Token) and child.type == "ELLIPSIS" for child in children)
        condition = rest[0].expression if rest else None
        return ForExpr(key_var, value_var, collection, key_result, value_result, condition, grouped)

    # Helpers

    def _error(self, line: int, column: int, summary: str) -> None:
        self.diagnostics.append(Diagnostic(self.filename, line, column, summary))

    @staticmethod
    def _traverse(source: Expression, step) -> Expression:
        if isinstance(source, ScopeTraversal):
            return ScopeTraversal(source.root, source.steps + (step,))
        if isinstance(source, RelativeTraversal):
            return RelativeTraversal(source.source, source.steps + (step,))
        if isinstance(source, SplatExpr):
            return SplatExpr(source.source, source.full, source.steps + (step,))
        return RelativeTraversal(source, (step,))

    @staticmethod
    def _literal_key(key: Expression) -> Optional[Union[int, float, str]]:
        if isinstance(key, LiteralValue) and key.kind == "number":
            value = key.value
            return int(value) if float(value).is_integer() else value
        if isinstance(key, TemplateExpr) and len(key.parts) == 1:
            part = key.parts[0]
            if isinstance(part, LiteralValue) and part.kind == "string":
                return part.value
        return None

    def _splat_steps(self, children):
        steps = []
        for child in _nodes(children):
            if isinstance(child, _BracketIndex):
                key = self._literal_key(child.key)
                if key is None:
                    # Dynamic keys after a splat are not representable as steps.
                    continue
                child = TraverseIndex(key)
            steps.append(child)
        return tuple(steps)

    def _label(self, label, line: int) -> str:
        if not isinstance(label, TemplateExpr):
            return _name(label)
        if all(isinstance(part, LiteralValue) for part in label.parts):
            return "".join(part.value for part in label.parts)
        self._error(line, 1, "Block labels may not contain template sequences")
        return ""


def _build(text: str, filename: str, column_offset: int = 0) -> Body:
    try:
        tree = hcl2.parses_to_tree(text)
    except UnexpectedInput as error:
        raise HCLSyntaxError([_diagnostic_from(error, filename, column_offset)]) from error

    builder = _SyntaxBuilder(filename, text)
    body = builder.transform(tree)
    if builder.diagnostics:
        raise HCLSyntaxError(builder.diagnostics)
    return body


def parse_source(text: str, filename: str = "<input>") -> HCLFile:
    """
    Parse HCL native syntax.

    Args:
        text: Template source
        filename: Name used in diagnostics

    Returns:
        Parsed file with its top-level body

    Raises:
        HCLSyntaxError: If the source has one or more syntax errors
    """
    return HCLFile(filename, _build(text, filename))


def parse_file(path: Union[str, Path]) -> HCLFile:
    """
    Read and parse a template file.

    Args:
        path: Path to the file

    Returns:
        Parsed file

    Raises:
        HCLSyntaxError: If the file has syntax errors
        OSError: If the file cannot be read
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    logger.debug("Parsing %s (%d bytes)", path, len(text))
    return parse_source(text, path.name)


def parse_expression(text: str, filename: str = "<expression>") -> Expression:
    """
    Parse a standalone expression.

    The expression is parsed as the value of a single attribute, so it must
    fit on the attribute's line or be bracketed.

    Args:
        text: Expression source
        filename: Name used in diagnostics

    Returns:
        Expression node

    Raises:
        HCLSyntaxError: If the expression is invalid
    """
    prefix = f"{EXPRESSION_ATTRIBUTE} = "
    body = _build(prefix + text, filename, column_offset=len(prefix))
    if EXPRESSION_ATTRIBUTE not in body.attributes or body.blocks or len(body.attributes) != 1:
        raise HCLSyntaxError([Diagnostic(filename, 1, 1, "Expected a single expression")])
    return body.attributes[EXPRESSION_ATTRIBUTE].expression
