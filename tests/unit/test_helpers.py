import pytest

from deploy_service.utils.helpers import (
    is_safe_relative_path,
    parse_site_and_application,
    tail_text,
    to_camel,
)


def test_to_camel():
    assert to_camel("build_output") == "buildOutput"
    assert to_camel("repo_url") == "repoUrl"
    assert to_camel("branch") == "branch"


@pytest.mark.parametrize(
    "site_name, application_path, expected",
    [
        ("shop", None, ("shop", None)),
        ("shop/checkout", None, ("shop", "checkout")),
        ("/shop/checkout/", None, ("shop", "checkout")),
        ("shop/", None, ("shop", None)),
        ("shop", "admin", ("shop", "admin")),
        ("shop", "  ", ("shop", None)),
    ],
)
def test_parse_site_and_application(site_name, application_path, expected):
    assert parse_site_and_application(site_name, application_path) == expected


@pytest.mark.parametrize("path", ["dist", "build/output", "shop/checkout", "a.b/c"])
def test_safe_relative_paths(path):
    assert is_safe_relative_path(path)


@pytest.mark.parametrize(
    "path",
    ["", "/etc", "../outside", "dist/../../x", "C:\\sites", "c:relative", "\\\\server\\share", "..\\up"],
)
def test_unsafe_paths(path):
    assert not is_safe_relative_path(path)


def test_tail_text_keeps_short_text():
    assert tail_text("  hello \n", 10) == "hello"
    assert tail_text(None, 10) == ""


def test_tail_text_cuts_from_the_front():
    text = "x" * 50 + "END"
    tail = tail_text(text, 20)
    assert len(tail) == 20
    assert tail.startswith("...")
    assert tail.endswith("END")
