"""
Tests for parsing whole template directories.
"""

import logging

import pytest

from tfcost.services.data_sources import (
    Credentials,
    CredentialsUnavailableError,
    DataSourceError,
    DataSourceResolver,
)
from tfcost.services.template_parser import TemplateParseError, TemplateParser, parse_template


VARIABLES_TF = '''
variable "cloud" {
  type    = string
  default = "aws"
}

variable "instance_type" {
  type    = string
  default = "t3.micro"
}

variable "instance_count" {
  type    = number
  default = 3
}
'''

MAIN_TF = '''
resource "aws_instance" "web" {
  count         = var.cloud == "aws" ? var.instance_count : 0
  instance_type = var.instance_type
  subnet_id     = var.subnet_id

  tags = {
    Name = "web-${count.index}"
  }
}
'''


@pytest.fixture
def template_dir(write_template):
    return write_template({"variables.tf": VARIABLES_TF, "main.tf": MAIN_TF})


def test_parse_template_with_defaults(template_dir):
    """Defaults drive count, attributes, provider and region."""
    result = parse_template(template_dir)

    assert result.provider == "aws"
    assert result.region == ""
    assert len(result.resources) == 1
    resource = result.resources[0]
    assert resource.type == "aws_instance"
    assert resource.name == "web"
    assert resource.count == 3
    assert resource.attributes["instance_type"] == "t3.micro"
    assert resource.attributes["subnet_id"] == "${var.subnet_id}"
    assert resource.attributes["tags"] == {"Name": "web-${count.index}"}


def test_overrides_beat_tfvars_and_defaults(write_template):
    directory = write_template({
        "variables.tf": VARIABLES_TF,
        "main.tf": MAIN_TF,
        "terraform.tfvars": 'instance_type = "t3.large"\ninstance_count = 5\n',
    })

    from_tfvars = parse_template(directory)
    overridden = parse_template(directory, {"instance_count": "7"})

    assert from_tfvars.resources[0].count == 5
    assert from_tfvars.resources[0].attributes["instance_type"] == "t3.large"
    assert overridden.resources[0].count == 7


def test_conditional_count_excludes_resource(template_dir):
    result = parse_template(template_dir, {"cloud": "alicloud"})

    assert result.resources == []
    assert result.provider == ""


def test_for_each_resources(write_template):
    directory = write_template({
        "main.tf": '''
variable "servers" {
  default = {
    a = "t3.micro"
    b = "t3.large"
  }
}

resource "aws_instance" "fixed" {
  for_each = {
    x = 1
    y = 2
    z = 3
  }
}

resource "aws_instance" "from_variable" {
  for_each = var.servers
}
''',
    })

    result = parse_template(directory)

    assert [(resource.name, resource.count) for resource in result.resources] == [
        ("fixed", 3),
        ("from_variable", 2),
    ]


def test_resources_across_files_keep_file_order(write_template):
    directory = write_template({
        "b.tf": 'resource "aws_db_instance" "db" {}\n',
        "a.tf": 'resource "alicloud_instance" "vm" {}\n',
    })

    result = parse_template(directory)

    assert [resource.type for resource in result.resources] == ["alicloud_instance", "aws_db_instance"]
    assert result.provider == "alicloud"


def test_region_from_provider_block(write_template):
    directory = write_template({
        "main.tf": '''
variable "region" {
  default = "cn-hangzhou"
}

provider "alicloud" {
  region = var.region
}

resource "alicloud_instance" "vm" {
  instance_type = "ecs.t5-lc1m1.small"
}
''',
    })

    result = parse_template(directory)

    assert result.region == "cn-hangzhou"
    assert result.resources[0].region == "cn-hangzhou"


def test_region_from_resource_attribute(write_template):
    directory = write_template({
        "main.tf": '''
provider "aws" {
  region = "us-west-2"
}

resource "aws_instance" "web" {
  region = "us-east-1"
}
''',
    })

    assert parse_template(directory).region == "us-east-1"


def test_missing_directory(tmp_path):
    with pytest.raises(TemplateParseError, match="not found"):
        parse_template(tmp_path / "missing")


def test_directory_without_templates(write_template):
    directory = write_template({"README.md": "nothing here"})

    with pytest.raises(TemplateParseError, match="no .tf files found"):
        parse_template(directory)


def test_syntax_errors_are_aggregated(write_template):
    """Errors from every file are reported together."""
    directory = write_template({
        "a.tf": 'resource "aws_instance" "a" {\n  ami =\n}\n',
        "b.tf": 'resource "aws_instance" "b" {\n  ami = "x"\n',
    })

    with pytest.raises(TemplateParseError, match="HCL parsing errors") as exc_info:
        parse_template(directory)

    assert {diagnostic.filename.rsplit("/", 1)[-1] for diagnostic in exc_info.value.diagnostics} == {"a.tf", "b.tf"}


def test_data_source_values_replace_references(write_template):
    """Resolved data sources replace whole and embedded references."""
    directory = write_template({
        "main.tf": '''
data "aws_ami" "ubuntu" {
  most_recent = true
  owners      = ["099720109477"]
}

resource "aws_instance" "web" {
  ami         = data.aws_ami.ubuntu.id
  description = "image ${data.aws_ami.ubuntu.id}"
  zone        = data.aws_zones.all.names
}
''',
    })
    calls = []

    def fetcher(data_type, arguments, credentials):
        calls.append((data_type, arguments, credentials))
        return {"id": "ami-123"}

    resolver = DataSourceResolver(lambda provider: Credentials("AKIAEXAMPLE", "secret", "us-east-1"), fetcher)

    result = TemplateParser(data_source_resolver=resolver).parse_template(directory)

    attributes = result.resources[0].attributes
    assert attributes["ami"] == "ami-123"
    assert attributes["description"] == "image ami-123"
    assert attributes["zone"] == "${data.aws_zones.all.names}"
    assert calls[0][0] == "aws_ami"
    assert calls[0][1] == {"most_recent": True, "owners": ["099720109477"]}


@pytest.mark.parametrize("error", [CredentialsUnavailableError("none"), DataSourceError("boom")])
def test_data_source_failures_leave_references(write_template, caplog, error):
    directory = write_template({
        "main.tf": '''
data "aws_ami" "ubuntu" {}

resource "aws_instance" "web" {
  ami = data.aws_ami.ubuntu.id
}
''',
    })

    def credentials(provider):
        if isinstance(error, CredentialsUnavailableError):
            raise error
        return Credentials("AKIAEXAMPLE", "secret")

    def fetcher(data_type, arguments, creds):
        raise error

    parser = TemplateParser(data_source_resolver=DataSourceResolver(credentials, fetcher))

    with caplog.at_level(logging.WARNING):
        result = parser.parse_template(directory)

    assert result.resources[0].attributes["ami"] == "${data.aws_ami.ubuntu.id}"
    assert "data.aws_ami.ubuntu" in caplog.text


def test_credentials_repr_masks_secret():
    credentials = Credentials("AKIAEXAMPLE", "very-secret")

    assert "very-secret" not in repr(credentials)


def test_cloud_selection_by_conditional_count(write_template):
    """Only the resource whose condition matches the chosen cloud survives."""
    directory = write_template({
        "main.tf": '''
variable "cloud_provider" {
  type    = string
  default = "alicloud"
}

resource "alicloud_instance" "vm" {
  count         = var.cloud_provider == "alicloud" ? 1 : 0
  instance_type = "ecs.t5-lc1m1.small"
}

resource "aws_instance" "vm" {
  count         = var.cloud_provider == "aws" ? 1 : 0
  instance_type = "t3.micro"
}

resource "volcengine_ecs_instance" "vm" {
  count         = var.cloud_provider == "volcengine" ? 1 : 0
  instance_type = "ecs.g1.large"
}
''',
    })

    result = parse_template(directory, {"cloud_provider": "aws"})

    assert [(resource.type, resource.count) for resource in result.resources] == [("aws_instance", 1)]
    assert result.provider == "aws"


def test_undefined_variable_is_a_placeholder(write_template):
    directory = write_template({
        "main.tf": 'resource "aws_instance" "web" {\n  instance_type = var.undefined_size\n}\n',
    })

    result = parse_template(directory)

    assert "undefined_size" in result.resources[0].attributes["instance_type"]
