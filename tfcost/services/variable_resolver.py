"""
Variable resolution service.

Builds the variable environment for one template from three sources, each
overriding the previous one wholesale:

1. ``default`` values of ``variable`` blocks,
2. variable-values files (``terraform.tfvars``, ``*.auto.tfvars``),
3. caller overrides, given as strings and coerced to the declared type.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

from tfcost.domain.template_models import OTHER_TYPE, VARIABLE_TYPES, VariableDefinition
from tfcost.domain.values import Value
from tfcost.hcl.parser import HCLSyntaxError, parse_file
from tfcost.hcl.syntax import Expression, HCLFile, ScopeTraversal
from tfcost.services.expression_evaluator import EvaluationError, ExpressionEvaluator
from tfcost.utils.fs import find_tfvars_files

logger = logging.getLogger(__name__)


class VariableConversionError(Exception):
    """Raised when an override string cannot be coerced to its declared type."""
    pass


def convert_variable_value(value: str, declared_type: str) -> Value:
    """
    Coerce an override string to a variable's declared type.

    Args:
        value: Raw override string
        declared_type: "string", "number", "bool" or "other"

    Returns:
        ``int`` or ``float`` for numbers, ``bool`` for booleans, otherwise
        the string unchanged

    Raises:
        VariableConversionError: If the string does not fit the declared type
    """
    if declared_type == "number":
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError as error:
            raise VariableConversionError(f"cannot convert {value!r} to number") from error
    if declared_type == "bool":
        if value == "true":
            return True
        if value == "false":
            return False
        raise VariableConversionError(f"cannot convert {value!r} to bool")
    return value


def declared_type_of(expression: Optional[Expression]) -> str:
    """
    Read the declared type from a ``type`` attribute expression.

    Both the bare keyword form (``type = number``) and the legacy quoted
    form (``type = "number"``) are recognised. Collection and structural
    types are reported as "other".

    Args:
        expression: The ``type`` attribute expression, if any

    Returns:
        One of "string", "number", "bool" or "other"
    """
    if expression is None:
        return OTHER_TYPE
    if isinstance(expression, ScopeTraversal):
        name = expression.root if not expression.steps else ""
    else:
        try:
            name = ExpressionEvaluator().evaluate(expression)
        except EvaluationError:
            return OTHER_TYPE
    return name if name in VARIABLE_TYPES else OTHER_TYPE


class VariableResolver:
    """
    Resolves the variable environment for a template.

    Definitions and variable-values files are evaluated with an empty
    environment: they may only contain constant expressions.
    """

    def __init__(self):
        """Initialize variable resolver."""
        self.evaluator = ExpressionEvaluator()

    def parse_definitions(self, files: Iterable[HCLFile]) -> Dict[str, VariableDefinition]:
        """
        Collect ``variable`` blocks from parsed template files.

        Blocks without a name label are skipped; a later definition with the
        same name replaces an earlier one.

        Args:
            files: Parsed template files

        Returns:
            Variable name to definition
        """
        definitions: Dict[str, VariableDefinition] = {}
        for hcl_file in files:
            for block in hcl_file.blocks_of_type("variable"):
                if not block.labels:
                    logger.warning("Skipping variable block without a name in %s:%d", hcl_file.filename, block.line)
                    continue

                name = block.labels[0]
                attributes = block.body.attributes
                type_attribute = attributes.get("type")
                description = self._evaluate_optional(attributes.get("description"))
                definitions[name] = VariableDefinition(
                    name=name,
                    type=declared_type_of(type_attribute.expression if type_attribute else None),
                    description=description if isinstance(description, str) else None,
                    default=self._evaluate_optional(attributes.get("default")),
                )
        return definitions

    def load_tfvars(self, template_dir: Path) -> Dict[str, Value]:
        """
        Load variable-values files from a template directory.

        A file that cannot be read or parsed is logged and skipped.

        Args:
            template_dir: Template directory

        Returns:
            Variable name to value, later files overriding earlier ones
        """
        values: Dict[str, Value] = {}
        for tfvars_path in find_tfvars_files(template_dir):
            try:
                hcl_file = parse_file(tfvars_path)
            except (HCLSyntaxError, OSError, UnicodeDecodeError) as error:
                logger.warning("Failed to parse variable-values file %s: %s", tfvars_path, error)
                continue
            values.update(self.evaluator.evaluate_attributes(hcl_file.body.attributes))
        return values

    def resolve(
        self,
        definitions: Mapping[str, VariableDefinition],
        tfvars_values: Optional[Mapping[str, Value]] = None,
        user_overrides: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Value]:
        """
        Build the variable environment.

        Args:
            definitions: Declared variables
            tfvars_values: Values from variable-values files
            user_overrides: Caller-supplied strings

        Returns:
            Variable name to value
        """
        variables: Dict[str, Value] = {}

        for name, definition in definitions.items():
            if definition.has_default:
                variables[name] = definition.default

        variables.update(tfvars_values or {})

        for name, raw_value in (user_overrides or {}).items():
            definition = definitions.get(name)
            if definition is None:
                variables[name] = raw_value
                continue
            try:
                variables[name] = convert_variable_value(raw_value, definition.type)
            except VariableConversionError as error:
                logger.warning("Using raw value for variable %s: %s", name, error)
                variables[name] = raw_value

        return variables

    def _evaluate_optional(self, attribute) -> Any:
        if attribute is None:
            return None
        try:
            return self.evaluator.evaluate(attribute.expression)
        except EvaluationError as error:
            logger.debug("Ignoring variable attribute %s: %s", attribute.name, error)
            return None
