"""
Pytest Configuration and Shared Fixtures.

- make_template: synthesize the stack with overrides and return its Template
- template: the stack synthesized with default settings
"""

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Template

from stacks.rolling_update_stack import RollingUpdateStack


@pytest.fixture(scope="session")
def make_template():
    """Return a factory that synthesizes the stack with the given settings."""

    def _make(**kwargs) -> Template:
        app = cdk.App()
        stack = RollingUpdateStack(
            app,
            "TestRollingUpdate",
            resource_name=kwargs.pop("resource_name", "test"),
            **kwargs,
        )
        return Template.from_stack(stack)

    return _make


@pytest.fixture(scope="session")
def template(make_template) -> Template:
    """Stack synthesized with the default settings."""
    return make_template()
