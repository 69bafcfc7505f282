"""
Filesystem utilities for locating template and variable-values files.
"""
from pathlib import Path
from typing import List, Union

from tfcost.core.config import config


def find_template_files(directory: Path) -> List[Path]:
    """
    Find the template files directly inside a directory.
    Subdirectories (modules, .terraform/) are not searched.

    Args:
        directory: Template directory

    Returns:
        Sorted list of Path objects for all template files found
    """
    return sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.suffix == config.TEMPLATE_FILE_EXTENSION
    )


def find_tfvars_files(directory: Path) -> List[Path]:
    """
    Find variable-values files in the order they are applied.

    ``terraform.tfvars`` comes first, then ``*.auto.tfvars`` in lexical order.

    Args:
        directory: Template directory

    Returns:
        List of existing variable-values files
    """
    files = []
    tfvars_path = directory / config.TFVARS_FILENAME
    if tfvars_path.is_file():
        files.append(tfvars_path)
    files.extend(sorted(
        path for path in directory.iterdir()
        if path.is_file() and path.name.endswith(config.AUTO_TFVARS_SUFFIX)
    ))
    return files


def resolve_template_path(root: Union[str, Path], template_name: str) -> Path:
    """
    Resolve a template name to a directory under a root directory.

    Args:
        root: Directory holding all templates
        template_name: Template name, possibly with subdirectories

    Returns:
        Absolute path of the template directory

    Raises:
        ValueError: If the name is empty, absolute, or escapes the root
    """
    if not template_name or not template_name.strip():
        raise ValueError("Template name is required")

    name_path = Path(template_name)
    if name_path.is_absolute():
        raise ValueError(f"Template name must be relative: {template_name}")

    root_path = Path(root).resolve()
    candidate = (root_path / name_path).resolve()
    if candidate != root_path and root_path not in candidate.parents:
        raise ValueError(f"Template name escapes the templates root: {template_name}")
    return candidate
