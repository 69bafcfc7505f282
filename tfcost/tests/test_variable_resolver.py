"""
Tests for variable definitions, variable-values files and override coercion.
"""

import logging

import pytest

from tfcost.domain.template_models import VariableDefinition
from tfcost.hcl.parser import parse_source
from tfcost.services.variable_resolver import (
    VariableConversionError,
    VariableResolver,
    convert_variable_value,
)


VARIABLES_TF = '''
variable "region" {
  type        = string
  description = "Deployment region"
  default     = "us-east-1"
}

variable "instance_count" {
  type    = number
  default = 1
}

variable "enabled" {
  type = "bool"
}

variable "zones" {
  type    = list(string)
  default = ["a", "b"]
}

variable "untyped" {
  default = null
}
'''


@pytest.fixture
def resolver():
    return VariableResolver()


@pytest.fixture
def definitions(resolver):
    return resolver.parse_definitions([parse_source(VARIABLES_TF, "variables.tf")])


def test_declared_types_are_detected(definitions):
    """Bare and quoted type keywords are recognised; other types are 'other'."""
    assert definitions["region"].type == "string"
    assert definitions["instance_count"].type == "number"
    assert definitions["enabled"].type == "bool"
    assert definitions["zones"].type == "other"
    assert definitions["untyped"].type == "other"


def test_defaults_and_descriptions(definitions):
    assert definitions["region"].default == "us-east-1"
    assert definitions["region"].description == "Deployment region"
    assert definitions["zones"].default == ["a", "b"]
    assert definitions["enabled"].has_default is False
    assert definitions["untyped"].has_default is False


def test_variable_without_name_is_skipped(resolver):
    hcl_file = parse_source('variable {\n  default = 1\n}\n', "bad.tf")

    assert resolver.parse_definitions([hcl_file]) == {}


@pytest.mark.parametrize("raw,declared,expected", [
    ("5", "number", 5),
    ("2.5", "number", 2.5),
    ("true", "bool", True),
    ("false", "bool", False),
    ("hello", "string", "hello"),
    ("[1, 2]", "other", "[1, 2]"),
])
def test_convert_variable_value(raw, declared, expected):
    value = convert_variable_value(raw, declared)

    assert value == expected
    assert type(value) is type(expected)


@pytest.mark.parametrize("raw,declared", [("many", "number"), ("yes", "bool"), ("True", "bool")])
def test_convert_variable_value_rejects_mismatches(raw, declared):
    with pytest.raises(VariableConversionError):
        convert_variable_value(raw, declared)


def test_later_sources_override_earlier(resolver, definitions):
    """Overrides beat variable-values files, which beat defaults."""
    variables = resolver.resolve(
        definitions,
        {"region": "eu-west-1", "instance_count": 2},
        {"instance_count": "3"},
    )

    assert variables["region"] == "eu-west-1"
    assert variables["instance_count"] == 3
    assert variables["zones"] == ["a", "b"]
    assert "enabled" not in variables


def test_override_replaces_whole_value(resolver):
    """Overrides replace collection defaults instead of merging."""
    definitions = {"tags": VariableDefinition("tags", default={"a": "1", "b": "2"})}

    variables = resolver.resolve(definitions, {"tags": {"c": "3"}}, None)

    assert variables["tags"] == {"c": "3"}


def test_failed_coercion_keeps_raw_string(resolver, definitions, caplog):
    with caplog.at_level(logging.WARNING):
        variables = resolver.resolve(definitions, {}, {"instance_count": "many"})

    assert variables["instance_count"] == "many"
    assert "instance_count" in caplog.text


def test_undeclared_override_is_kept_raw(resolver, definitions):
    variables = resolver.resolve(definitions, {}, {"extra": "42"})

    assert variables["extra"] == "42"


def test_load_tfvars_applies_auto_files_last(resolver, write_template):
    directory = write_template({
        "main.tf": 'resource "null_resource" "x" {}\n',
        "terraform.tfvars": 'region = "eu-west-1"\ninstance_count = 2\n',
        "b.auto.tfvars": 'instance_count = 4\n',
    })

    assert resolver.load_tfvars(directory) == {"region": "eu-west-1", "instance_count": 4}


def test_missing_tfvars_is_empty(resolver, write_template):
    directory = write_template({"main.tf": ""})

    assert resolver.load_tfvars(directory) == {}


def test_unparsable_tfvars_is_skipped(resolver, write_template, caplog):
    directory = write_template({
        "main.tf": "",
        "terraform.tfvars": 'region = \n',
    })

    with caplog.at_level(logging.WARNING):
        values = resolver.load_tfvars(directory)

    assert values == {}
    assert "terraform.tfvars" in caplog.text
