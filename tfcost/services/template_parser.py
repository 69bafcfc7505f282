"""
Template parsing service.

Parses every template file in a directory, resolves variables and extracts
the billable resources. Each call builds its own variable environment, so
concurrent calls on different templates never share state.
"""
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from tfcost.domain.template_models import TemplateResources
from tfcost.hcl.parser import HCLSyntaxError, parse_file
from tfcost.hcl.syntax import Block, Diagnostic, HCLFile
from tfcost.services.data_sources import DataSourceResolver, resolve_data_sources
from tfcost.services.resource_extractor import ResourceExtractor
from tfcost.services.variable_resolver import VariableResolver
from tfcost.utils.fs import find_template_files

logger = logging.getLogger(__name__)


class TemplateParseError(Exception):
    """Raised when a template directory cannot be parsed."""

    def __init__(self, message: str, diagnostics: Optional[List[Diagnostic]] = None):
        super().__init__(message)
        self.diagnostics = list(diagnostics or [])


class TemplateParser:
    """Parses template directories into ``TemplateResources``."""

    def __init__(
        self,
        variable_resolver: Optional[VariableResolver] = None,
        resource_extractor: Optional[ResourceExtractor] = None,
        data_source_resolver: Optional[DataSourceResolver] = None,
    ):
        """
        Initialize template parser.

        Args:
            variable_resolver: Resolver for variable definitions and values
            resource_extractor: Extractor for resource blocks
            data_source_resolver: Optional resolver for ``data`` blocks
        """
        self.variable_resolver = variable_resolver or VariableResolver()
        self.resource_extractor = resource_extractor or ResourceExtractor()
        self.data_source_resolver = data_source_resolver

    def parse_template(
        self,
        template_path: Union[str, Path],
        variables: Optional[Mapping[str, str]] = None,
    ) -> TemplateResources:
        """
        Parse a template directory.

        Args:
            template_path: Directory holding the template files
            variables: Caller overrides for declared variables, as strings

        Returns:
            Extracted resources with provider and region

        Raises:
            TemplateParseError: If the directory is missing, holds no template
                files, or any file has syntax errors
        """
        template_dir = Path(template_path)
        files = self.parse_files(template_dir)

        definitions = self.variable_resolver.parse_definitions(files)
        tfvars_values = self.variable_resolver.load_tfvars(template_dir)
        environment = self.variable_resolver.resolve(definitions, tfvars_values, variables)
        logger.debug("Resolved %d variable(s) for %s", len(environment), template_dir)

        blocks: List[Block] = [block for hcl_file in files for block in hcl_file.body.blocks]
        provider_regions = self.resource_extractor.extract_provider_regions(blocks, environment)
        resources = self.resource_extractor.extract(blocks, environment, provider_regions)
        resources = resolve_data_sources(self.data_source_resolver, blocks, environment, resources)

        result = TemplateResources(resources=resources)
        if resources:
            result.provider = resources[0].provider
        result.region = next((resource.region for resource in resources if resource.region), "")
        if not result.region and result.provider:
            result.region = provider_regions.get(result.provider, "")

        logger.info(
            "Parsed %s: %d resource(s), provider=%s, region=%s",
            template_dir, len(resources), result.provider or "-", result.region or "-",
        )
        return result

    def parse_files(self, template_dir: Path) -> List[HCLFile]:
        """
        Parse all template files in a directory.

        Syntax errors from every file are collected and reported together.

        Args:
            template_dir: Template directory

        Returns:
            Parsed files in lexical order

        Raises:
            TemplateParseError: If the directory is missing, holds no template
                files, or any file has syntax errors
        """
        if not template_dir.is_dir():
            raise TemplateParseError(f"template directory not found: {template_dir}")

        paths = find_template_files(template_dir)
        if not paths:
            raise TemplateParseError(f"no .tf files found in {template_dir}")

        files: List[HCLFile] = []
        diagnostics: List[Diagnostic] = []
        for path in paths:
            try:
                files.append(parse_file(path))
            except HCLSyntaxError as error:
                diagnostics.extend(error.diagnostics)
            except (OSError, UnicodeDecodeError) as error:
                raise TemplateParseError(f"failed to read {path}: {error}") from error

        if diagnostics:
            summary = "; ".join(str(diagnostic) for diagnostic in diagnostics)
            raise TemplateParseError(f"HCL parsing errors: {summary}", diagnostics)
        return files


def parse_template(
    template_path: Union[str, Path],
    variables: Optional[Dict[str, str]] = None,
    data_source_resolver: Optional[DataSourceResolver] = None,
) -> TemplateResources:
    """Parse a template directory with the default collaborators."""
    return TemplateParser(data_source_resolver=data_source_resolver).parse_template(template_path, variables)
