from webk8s.version import format_version, version


def test_version_is_source_default():
    assert version() == "0.0.0"


def test_format_version_replaces_placeholder():
    assert format_version("WebK8S {version} @ master") == "WebK8S v0.0.0 @ master"


def test_format_version_replaces_every_placeholder():
    result = format_version("{version}/{version}")
    assert result == f"v{version()}/v{version()}"


def test_format_version_leaves_other_text_alone():
    assert format_version("no placeholder here") == "no placeholder here"