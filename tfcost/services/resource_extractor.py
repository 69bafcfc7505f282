"""
Resource extraction service.

Turns ``resource`` blocks into ``ResourceSpec`` entries: evaluates their
attributes, resolves ``count`` and ``for_each`` into a quantity, folds
nested blocks into the attribute map and derives the provider and region.
"""
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from tfcost.domain.template_models import ResourceSpec
from tfcost.domain.values import Value, is_unresolved
from tfcost.hcl.syntax import Block
from tfcost.services.expression_evaluator import ExpressionEvaluator

logger = logging.getLogger(__name__)

DEFAULT_COUNT = 1
UNKNOWN_COUNT = -1

_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")


def coerce_count(value: Any) -> int:
    """
    Convert an evaluated ``count`` value to a quantity.

    Integers are taken as is, floats are truncated and strings are parsed
    for a leading integer. Anything else, including placeholders, yields
    ``UNKNOWN_COUNT``.

    Args:
        value: Evaluated ``count`` attribute

    Returns:
        Resource quantity, or ``UNKNOWN_COUNT``
    """
    if isinstance(value, bool):
        return UNKNOWN_COUNT
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else UNKNOWN_COUNT
    if isinstance(value, str):
        match = _LEADING_INTEGER.match(value)
        return int(match.group(1)) if match else UNKNOWN_COUNT
    return UNKNOWN_COUNT


def for_each_count(value: Any) -> int:
    """
    Convert an evaluated ``for_each`` value to a quantity.

    Maps and lists contribute their size. Anything unresolved, such as a
    function placeholder for ``toset(...)``, counts as a single instance.

    Args:
        value: Evaluated ``for_each`` attribute

    Returns:
        Resource quantity
    """
    if isinstance(value, (dict, list)):
        return len(value)
    return DEFAULT_COUNT


def provider_of(resource_type: str) -> str:
    """Return the provider prefix of a resource type (``aws_instance`` -> ``aws``)."""
    return resource_type.split("_", 1)[0]


def resolved_region(attributes: Mapping[str, Any]) -> str:
    """Return the ``region`` attribute when it resolved to a plain string."""
    region = attributes.get("region")
    if isinstance(region, str) and region and not is_unresolved(region):
        return region
    return ""


class ResourceExtractor:
    """Extracts billable resource declarations from template blocks."""

    def extract(
        self,
        blocks: Iterable[Block],
        variables: Mapping[str, Value],
        provider_regions: Optional[Mapping[str, str]] = None,
    ) -> List[ResourceSpec]:
        """
        Extract resources from top-level blocks.

        Args:
            blocks: Top-level blocks of all template files
            variables: Resolved variable environment
            provider_regions: Region configured per provider block

        Returns:
            Resources with a positive quantity, in declaration order
        """
        evaluator = ExpressionEvaluator(variables)
        provider_regions = provider_regions or {}
        resources = []

        for block in blocks:
            if block.type != "resource":
                continue
            if len(block.labels) < 2:
                logger.warning("Skipping resource block with %d label(s) at line %d", len(block.labels), block.line)
                continue

            resource = self._extract_resource(block, evaluator, provider_regions)
            if resource is not None:
                resources.append(resource)

        return resources

    def extract_provider_regions(self, blocks: Iterable[Block], variables: Mapping[str, Value]) -> Dict[str, str]:
        """
        Collect the resolved ``region`` of each ``provider`` block.

        The first block per provider name wins; aliased provider blocks do
        not replace it.

        Args:
            blocks: Top-level blocks of all template files
            variables: Resolved variable environment

        Returns:
            Provider name to region
        """
        evaluator = ExpressionEvaluator(variables)
        regions: Dict[str, str] = {}
        for block in blocks:
            if block.type != "provider" or not block.labels:
                continue
            region = resolved_region(evaluator.evaluate_attributes(block.body.attributes))
            if region and block.labels[0] not in regions:
                regions[block.labels[0]] = region
        return regions

    def _extract_resource(
        self,
        block: Block,
        evaluator: ExpressionEvaluator,
        provider_regions: Mapping[str, str],
    ) -> Optional[ResourceSpec]:
        resource_type, resource_name = block.labels[0], block.labels[1]
        attributes = evaluator.evaluate_attributes(block.body.attributes)

        count = DEFAULT_COUNT
        if "count" in attributes:
            count = coerce_count(attributes["count"])
        if "for_each" in attributes:
            count = for_each_count(attributes["for_each"])

        if count <= 0:
            logger.info(
                "Excluding %s.%s: count resolved to %d (raw value %r)",
                resource_type, resource_name, count, attributes.get("count"),
            )
            return None

        for nested in block.body.blocks:
            nested_attributes = evaluator.evaluate_attributes(nested.body.attributes)
            if nested_attributes:
                attributes[nested.type] = nested_attributes

        provider = provider_of(resource_type)
        region = resolved_region(attributes) or provider_regions.get(provider, "")

        return ResourceSpec(
            type=resource_type,
            name=resource_name,
            count=count,
            attributes=attributes,
            provider=provider,
            region=region,
        )
