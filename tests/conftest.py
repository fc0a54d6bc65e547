"""Pytest configuration and fixtures for jinko tests."""

import pytest

from jinko import DictLoader, Environment, UndefinedBehavior


@pytest.fixture
def env():
    """Create a basic jinko Environment (lenient, extension-based escaping)."""
    return Environment()


@pytest.fixture
def env_autoescape():
    """Create a jinko Environment that HTML-escapes every template."""
    return Environment(autoescape=True)


@pytest.fixture
def env_strict():
    """Create a jinko Environment with strict undefined handling."""
    return Environment(undefined=UndefinedBehavior.STRICT)


@pytest.fixture
def env_chainable():
    """Create a jinko Environment with chainable undefined handling."""
    return Environment(undefined=UndefinedBehavior.CHAINABLE)


@pytest.fixture
def env_with_loader():
    """Create a jinko Environment with DictLoader and test templates."""
    loader = DictLoader(
        {
            "base.html": (
                "<html>"
                "<head>{% block head %}{% endblock %}</head>"
                "<body>{% block body %}{% endblock %}</body>"
                "</html>"
            ),
            "child.html": ('{% extends "base.html" %}{% block body %}Hello World{% endblock %}'),
            "partial.txt": "<p>Partial {{ name }}</p>",
            "macros.txt": (
                "{% macro greet(name) %}Hello {{ name }}{% endmacro %}"
                "{% macro add(a, b) %}{{ a + b }}{% endmacro %}"
                "{% set answer = 42 %}"
            ),
        }
    )
    return Environment(loader=loader)


@pytest.fixture
def render(env):
    """Render a template string with the basic environment."""

    def _render(source: str, *args, **context) -> str:
        return env.from_string(source).render(*args, **context)

    return _render


def assert_template_equal(template_result: str, expected: str) -> None:
    """Assert template result equals expected, normalizing whitespace.

    Args:
        template_result: The actual template rendering result.
        expected: The expected output.
    """
    actual_normalized = " ".join(template_result.split())
    expected_normalized = " ".join(expected.split())
    assert actual_normalized == expected_normalized, (
        f"Template output mismatch:\n"
        f"  Actual: {actual_normalized!r}\n"
        f"  Expected: {expected_normalized!r}"
    )
