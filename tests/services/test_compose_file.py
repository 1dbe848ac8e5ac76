import pytest

from sitedeploy.services.compose_file import ComposeDefinition, rewrite_image_tag, split_image_reference

COMPOSE = (
    "services:\r\n"
    "  web:\r\n"
    "    image: \"registry.example.com:5000/team/site:v1\"   # current\r\n"
    "    ports:\r\n"
    "      - \"8080:80\"\r\n"
    "  cache:\r\n"
    "    image: redis:7\r\n"
    "    restart: unless-stopped"
)


@pytest.mark.parametrize(
    "reference, expected",
    [
        ("site", ("site", None)),
        ("site:v1", ("site", "v1")),
        ("registry.example.com:5000/team/site", ("registry.example.com:5000/team/site", None)),
        ("registry.example.com:5000/team/site:v1", ("registry.example.com:5000/team/site", "v1")),
        ("site@sha256:abc", ("site", None)),
        ("site:v1@sha256:abc", ("site", "v1")),
    ],
)
def test_split_image_reference(reference, expected):
    assert split_image_reference(reference) == expected


def test_rewrite_only_touches_matching_image_line():
    new_content, previous = rewrite_image_tag(COMPOSE, "registry.example.com:5000/team/site", "v2")

    assert previous == ["registry.example.com:5000/team/site:v1"]
    expected = COMPOSE.replace("team/site:v1", "team/site:v2")
    assert new_content == expected
    assert "image: redis:7\r\n" in new_content
    assert new_content.endswith("    restart: unless-stopped")


def test_rewrite_adds_tag_to_untagged_reference():
    content = "services:\n  web:\n    - image: site\n"

    new_content, previous = rewrite_image_tag(content, "site", "latest")

    assert previous == ["site"]
    assert new_content == "services:\n  web:\n    - image: site:latest\n"


def test_rewrite_then_restore_is_identity():
    new_content, _ = rewrite_image_tag(COMPOSE, "registry.example.com:5000/team/site", "v2")
    restored, _ = rewrite_image_tag(new_content, "registry.example.com:5000/team/site", "v1")

    assert restored == COMPOSE


def test_rewrite_without_match_returns_content_unchanged():
    new_content, previous = rewrite_image_tag(COMPOSE, "other/site", "v2")

    assert previous == []
    assert new_content == COMPOSE


def test_definition_lists_image_references():
    definition = ComposeDefinition.parse(COMPOSE)

    assert definition.image_references() == ["registry.example.com:5000/team/site:v1", "redis:7"]
    assert definition.references_for("redis") == ["redis:7"]
    assert definition.render() == COMPOSE
