"""
Data-source resolution.

``data`` blocks describe lookups against a provider (an image id, a list of
zones). When a credential provider and a fetcher are supplied, the resolver
performs those lookups and the results replace the ``${data...}``
placeholders left in resource attributes. Credentials are always passed in
by the caller; nothing here reads process-wide state.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from tfcost.domain.template_models import ResourceSpec
from tfcost.domain.values import Value, format_value
from tfcost.hcl.syntax import Block
from tfcost.services.expression_evaluator import ExpressionEvaluator
from tfcost.services.resource_extractor import provider_of

logger = logging.getLogger(__name__)

DATA_REFERENCE_PATTERN = re.compile(r"\$\{(data\.[A-Za-z0-9_.\-\[\]]+)\}")


class CredentialsUnavailableError(Exception):
    """Raised by a credential provider that has no credentials for a provider."""
    pass


class DataSourceError(Exception):
    """Raised by a fetcher when a data source lookup fails."""
    pass


@dataclass(frozen=True)
class Credentials:
    """Provider credentials handed to a data source fetcher."""
    access_key: str
    secret_key: str
    region: str = ""

    def __repr__(self) -> str:
        return f"Credentials(access_key={self.access_key[:4]}****, region={self.region!r})"


# (provider) -> Credentials, raising CredentialsUnavailableError
CredentialProvider = Callable[[str], Credentials]

# (data source type, evaluated arguments, credentials) -> attribute values
DataSourceFetcher = Callable[[str, Dict[str, Value], Credentials], Mapping[str, Value]]


class DataSourceResolver:
    """
    Resolves ``data`` blocks through caller-supplied collaborators.

    Every failure is confined to the data block that caused it: the block
    is logged and skipped, and references to it stay unresolved.
    """

    def __init__(self, credential_provider: CredentialProvider, fetcher: DataSourceFetcher):
        """
        Initialize resolver.

        Args:
            credential_provider: Returns credentials for a provider name
            fetcher: Performs a data source lookup
        """
        self.credential_provider = credential_provider
        self.fetcher = fetcher

    def resolve(self, blocks: Iterable[Block], variables: Mapping[str, Value]) -> Dict[str, Value]:
        """
        Resolve all ``data`` blocks.

        Args:
            blocks: Top-level blocks of all template files
            variables: Resolved variable environment

        Returns:
            Reference path (``data.<type>.<name>.<attribute>``) to value
        """
        evaluator = ExpressionEvaluator(variables)
        resolved: Dict[str, Value] = {}

        for block in blocks:
            if block.type != "data" or len(block.labels) < 2:
                continue

            data_type, data_name = block.labels[0], block.labels[1]
            provider = provider_of(data_type)
            try:
                credentials = self.credential_provider(provider)
            except CredentialsUnavailableError as error:
                logger.warning("Skipping data.%s.%s: no credentials for %s: %s", data_type, data_name, provider, error)
                continue

            arguments = evaluator.evaluate_attributes(block.body.attributes)
            try:
                result = self.fetcher(data_type, arguments, credentials)
            except DataSourceError as error:
                logger.warning("Failed to resolve data.%s.%s: %s", data_type, data_name, error)
                continue
            except Exception as error:
                logger.error("Unexpected error resolving data.%s.%s: %s", data_type, data_name, error, exc_info=True)
                continue

            for attribute, value in (result or {}).items():
                resolved[f"data.{data_type}.{data_name}.{attribute}"] = value
            logger.info("Resolved data.%s.%s (%d attributes)", data_type, data_name, len(result or {}))

        return resolved


def replace_data_source_references(
    resources: List[ResourceSpec],
    resolved: Mapping[str, Value],
) -> List[ResourceSpec]:
    """
    Substitute resolved data source values into resource attributes.

    A string that is exactly one reference becomes the resolved value; a
    reference embedded in a longer string is replaced by its display text.
    References without a resolved value are left untouched.

    Args:
        resources: Extracted resources
        resolved: Reference path to value, from ``DataSourceResolver.resolve``

    Returns:
        New resource list; the input resources are not modified
    """
    if not resolved:
        return list(resources)
    return [
        ResourceSpec(
            type=resource.type,
            name=resource.name,
            count=resource.count,
            attributes=_substitute(resource.attributes, resolved),
            provider=resource.provider,
            region=resource.region,
        )
        for resource in resources
    ]


def _substitute(value: Any, resolved: Mapping[str, Value]) -> Any:
    if isinstance(value, dict):
        return {key: _substitute(item, resolved) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute(item, resolved) for item in value]
    if not isinstance(value, str) or not DATA_REFERENCE_PATTERN.search(value):
        return value

    whole = DATA_REFERENCE_PATTERN.fullmatch(value)
    if whole and whole.group(1) in resolved:
        return resolved[whole.group(1)]

    def replace(match: "re.Match") -> str:
        path = match.group(1)
        return format_value(resolved[path]) if path in resolved else match.group(0)

    return DATA_REFERENCE_PATTERN.sub(replace, value)


def resolve_data_sources(
    resolver: Optional[DataSourceResolver],
    blocks: List[Block],
    variables: Mapping[str, Value],
    resources: List[ResourceSpec],
) -> List[ResourceSpec]:
    """Run the resolver when one is configured and apply its results."""
    if resolver is None:
        return resources
    return replace_data_source_references(resources, resolver.resolve(blocks, variables))
