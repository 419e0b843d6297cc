"""Unit tests for content_converter.markdown_converter module."""

import pytest

from confluence_mirror.confluence_client.errors import TransformError
from confluence_mirror.content_converter import TOKEN_PATTERN, MarkdownConverter
from confluence_mirror.content_converter.reference_tokens import title_token
from confluence_mirror.models import AttachmentRef, ConfluencePage, ItemKind, UserProfile
from tests.fixtures import attachment_image, page_link, title_link, user_mention


def make_page(body, attachments=()):
    return ConfluencePage(
        page_id="1001",
        space_key="TEAM",
        title="Home",
        content_storage=body,
        version=1,
        attachments=list(attachments),
    )


@pytest.fixture
def converter():
    return MarkdownConverter()


class TestBasicConversion:
    """Test cases for plain content."""

    def test_title_becomes_heading(self, converter):
        result = converter.transform(make_page("<p>Hello <strong>world</strong></p>"))

        assert result.markdown.startswith("# Home\n\n")
        assert "Hello **world**" in result.markdown

    def test_empty_page(self, converter):
        """A page without content still gets its title."""
        result = converter.transform(make_page(""))

        assert result.markdown == "# Home\n"
        assert result.outbound_refs == []

    def test_headings_use_atx_style(self, converter):
        result = converter.transform(make_page("<h2>Setup</h2><ul><li>one</li></ul>"))

        assert "## Setup" in result.markdown
        assert "- one" in result.markdown

    def test_conversion_is_deterministic(self, converter):
        """Identical input yields identical output."""
        body = f"<p>{page_link('1002', 'Child')} and {user_mention('u1')}</p>"

        first = converter.transform(make_page(body))
        second = converter.transform(make_page(body))

        assert first.markdown == second.markdown
        assert first.outbound_refs == second.outbound_refs


class TestReferences:
    """Links to pages, users and attachments become placeholder tokens."""

    def test_page_link_by_id(self, converter):
        result = converter.transform(make_page(f"<p>See {page_link('1002', 'Child')}</p>"))

        assert "[Child](mirror-ref:page:1002)" in result.markdown
        assert len(result.outbound_refs) == 1
        ref = result.outbound_refs[0]
        assert ref.kind == ItemKind.PAGE
        assert ref.target_remote_id == "1002"

    def test_user_mention(self, converter):
        result = converter.transform(make_page(f"<p>Owner: {user_mention('557058:alice')}</p>"))

        assert "mirror-ref:user:557058:alice" in result.markdown
        ref = result.outbound_refs[0]
        assert ref.kind == ItemKind.USER
        assert ref.target_remote_id == "557058:alice"

    def test_title_link_defaults_to_page_space(self, converter):
        result = converter.transform(make_page(f"<p>{title_link('Getting Started', 'Start')}</p>"))

        ref = result.outbound_refs[0]
        assert ref.token == title_token("TEAM", "Getting Started")
        assert ref.target_remote_id is None
        assert ref.target_title == "Getting Started"
        assert ref.target_space == "TEAM"

    def test_title_link_to_other_space(self, converter):
        body = '<p><ac:link><ri:page ri:space-key="DOCS" ri:content-title="API" /></ac:link></p>'

        result = converter.transform(make_page(body))

        assert result.outbound_refs[0].target_space == "DOCS"

    def test_attachment_image(self, converter):
        page = make_page(
            f"<p>{attachment_image('logo.png')}</p>",
            attachments=[AttachmentRef("att77", "logo.png")],
        )

        result = converter.transform(page)

        assert "mirror-ref:attachment:att77" in result.markdown
        assert result.outbound_refs[0].kind == ItemKind.ATTACHMENT

    def test_unlisted_attachment_warns(self, converter):
        result = converter.transform(make_page(f"<p>{attachment_image('gone.png')}</p>"))

        assert result.outbound_refs == []
        assert any("gone.png" in w for w in result.warnings)

    def test_duplicate_links_reported_once(self, converter):
        """Each distinct token appears once among the outbound references."""
        body = f"<p>{page_link('1002', 'a')} {page_link('1002', 'b')} {page_link('1003', 'c')}</p>"

        result = converter.transform(make_page(body))

        assert [r.token for r in result.outbound_refs] == ["mirror-ref:page:1002", "mirror-ref:page:1003"]

    def test_confluence_url_becomes_page_reference(self, converter):
        body = '<p><a href="https://example.atlassian.net/wiki/spaces/TEAM/pages/4242/Guide">Guide</a></p>'

        result = converter.transform(make_page(body))

        assert "[Guide](mirror-ref:page:4242)" in result.markdown
        assert result.outbound_refs[0].target_remote_id == "4242"

    def test_external_links_untouched(self, converter):
        result = converter.transform(make_page('<p><a href="https://example.com">site</a></p>'))

        assert "[site](https://example.com)" in result.markdown
        assert result.outbound_refs == []

    def test_every_token_in_markdown_is_reported(self, converter):
        """Tokens found in the markdown and the reported references agree."""
        page = make_page(
            f"<p>{page_link('1002', 'Child')} {user_mention('u1')} {attachment_image('a.png')}</p>",
            attachments=[AttachmentRef("att1", "a.png")],
        )

        result = converter.transform(page)

        assert set(TOKEN_PATTERN.findall(result.markdown)) == {r.token for r in result.outbound_refs}


class TestMacros:
    """Test cases for structured macros."""

    def test_code_macro(self, converter):
        body = (
            '<ac:structured-macro ac:name="code">'
            '<ac:parameter ac:name="language">python</ac:parameter>'
            '<ac:plain-text-body><![CDATA[if a < b:\n    print(a)]]></ac:plain-text-body>'
            '</ac:structured-macro>'
        )

        result = converter.transform(make_page(body))

        assert "```python" in result.markdown
        assert "if a < b:" in result.markdown

    def test_info_macro_becomes_callout(self, converter):
        body = (
            '<ac:structured-macro ac:name="info">'
            '<ac:parameter ac:name="title">Heads up</ac:parameter>'
            '<ac:rich-text-body><p>Read this first.</p></ac:rich-text-body>'
            '</ac:structured-macro>'
        )

        result = converter.transform(make_page(body))

        assert "> **Info: Heads up**" in result.markdown
        assert "Read this first." in result.markdown

    def test_toc_macro_dropped(self, converter):
        body = '<ac:structured-macro ac:name="toc" /><p>Body</p>'

        result = converter.transform(make_page(body))

        assert result.markdown == "# Home\n\nBody\n"
        assert result.warnings == []

    def test_unknown_macro_keeps_body_and_warns(self, converter):
        body = (
            '<ac:structured-macro ac:name="jira-roadmap">'
            '<ac:rich-text-body><p>Roadmap text</p></ac:rich-text-body>'
            '</ac:structured-macro>'
        )

        result = converter.transform(make_page(body))

        assert "Roadmap text" in result.markdown
        assert result.warnings == ["Unsupported macro 'jira-roadmap' rendered as plain content"]

    def test_links_inside_macros_are_found(self, converter):
        body = (
            '<ac:structured-macro ac:name="expand">'
            f'<ac:rich-text-body><p>{page_link("1002", "Child")}</p></ac:rich-text-body>'
            '</ac:structured-macro>'
        )

        result = converter.transform(make_page(body))

        assert [r.target_remote_id for r in result.outbound_refs] == ["1002"]


class TestErrorsAndProfiles:
    """Test cases for failures and user profile rendering."""

    def test_unexpected_failure_becomes_transform_error(self, converter, mocker):
        mocker.patch.object(converter, "_convert_macros", side_effect=ValueError("boom"))

        with pytest.raises(TransformError) as exc_info:
            converter.transform(make_page("<p>x</p>"))

        assert exc_info.value.remote_id == "1001"

    def test_render_user_profile(self):
        markdown = MarkdownConverter.render_user_profile(
            UserProfile("u1", "Alice Smith", email="alice@example.com")
        )

        assert markdown.startswith("# Alice Smith\n")
        assert "`u1`" in markdown
        assert "alice@example.com" in markdown
