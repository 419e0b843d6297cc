"""Markdown converter for Confluence storage format.

Converts a page's storage format (XHTML with `ac:`/`ri:` elements) into
markdown using BeautifulSoup for the Confluence specific rewriting and
markdownify for the HTML to markdown step. Links to other pages, users and
attachments become placeholder tokens and are reported as outbound
references; their final targets are filled in after discovery finishes.

The conversion is deterministic: identical input always yields identical
markdown and references, which keeps content hashes stable across runs.
"""

import html
import logging
import re
from typing import Callable, Dict, List, Optional

from bs4 import BeautifulSoup, Tag
from markdownify import MarkdownConverter as BaseMarkdownConverter

from ..confluence_client.errors import TransformError
from ..models import (
    ConfluencePage,
    ConversionResult,
    ItemKind,
    OutboundReference,
    UserProfile,
)
from .reference_tokens import attachment_token, page_token, title_token, user_token

logger = logging.getLogger(__name__)

CDATA_PATTERN = re.compile(r'<!\[CDATA\[(.*?)\]\]>', re.DOTALL)

# Confluence page URL shapes that carry a page ID
PAGE_URL_PATTERNS = [
    re.compile(r'/pages/viewpage\.action\?(?:.*&)?pageId=(\d+)'),
    re.compile(r'/spaces/[^/]+/pages/(\d+)'),
    re.compile(r'/display/[^/]+/(\d+)$'),
]

CALLOUT_MACROS = {'info': 'Info', 'note': 'Note', 'warning': 'Warning', 'tip': 'Tip'}


class _CustomMarkdownConverter(BaseMarkdownConverter):
    """Custom markdownify converter with Confluence-friendly settings."""

    def __init__(self, **options):
        options.setdefault('heading_style', 'atx')
        options.setdefault('bullets', '-')
        options.setdefault('strong_em_symbol', '*')
        options.setdefault('code_language_callback', _code_language)
        super().__init__(**options)

    def _is_in_table_cell(self, parent_tags):
        return 'td' in parent_tags or 'th' in parent_tags

    def convert_p(self, el, text, parent_tags):
        """Convert paragraph, keeping cell paragraphs as line breaks.

        Confluence stores multi-line table cell content as multiple <p> tags.
        """
        text = text.strip()
        if not text:
            return ''
        if self._is_in_table_cell(parent_tags):
            return text + '\n'
        if '_inline' in parent_tags:
            return ' ' + text + ' '
        return '\n\n%s\n\n' % text

    def _convert_cell(self, el, text):
        colspan = 1
        if 'colspan' in el.attrs and el['colspan'].isdigit():
            colspan = max(1, min(1000, int(el['colspan'])))
        cell_text = re.sub(r'(<br>)+', '<br>', text.strip().replace('\n', '<br>'))
        while cell_text.endswith('<br>'):
            cell_text = cell_text.removesuffix('<br>')
        return ' ' + cell_text + ' |' * colspan

    def convert_td(self, el, text, parent_tags):
        return self._convert_cell(el, text)

    def convert_th(self, el, text, parent_tags):
        return self._convert_cell(el, text)

    def convert_br(self, el, text, parent_tags):
        if self._is_in_table_cell(parent_tags):
            return '<br>'
        if '_inline' in parent_tags:
            return ' '
        if self.options['newline_style'].lower() == 'backslash':
            return '\\\n'
        return '  \n'


def _code_language(el) -> str:
    return el.get('data-language') or ''


class MarkdownConverter:
    """Transform collaborator: storage format page -> markdown + references.

    Example:
        >>> converter = MarkdownConverter()
        >>> result = converter.transform(page)
        >>> [ref.token for ref in result.outbound_refs]
        ['mirror-ref:page:2002', 'mirror-ref:user:557058:alice']
    """

    def __init__(self):
        self._macro_converters: Dict[str, Callable[[BeautifulSoup, Tag, List[str]], None]] = {
            'code': self._convert_code_macro,
            'noformat': self._convert_code_macro,
            'info': self._convert_callout_macro,
            'note': self._convert_callout_macro,
            'warning': self._convert_callout_macro,
            'tip': self._convert_callout_macro,
            'expand': self._convert_body_macro,
            'panel': self._convert_body_macro,
            'section': self._convert_body_macro,
            'column': self._convert_body_macro,
            'toc': self._drop_macro,
            'children': self._drop_macro,
        }

    def transform(self, page: ConfluencePage) -> ConversionResult:
        """Convert a page to markdown with reference placeholders.

        Args:
            page: Page with storage format content

        Returns:
            ConversionResult with markdown, one outbound reference per distinct
            placeholder token (in order of appearance) and warnings

        Raises:
            TransformError: If the content cannot be converted
        """
        refs: Dict[str, OutboundReference] = {}
        warnings: List[str] = []

        try:
            soup = BeautifulSoup(_unwrap_cdata(page.content_storage or ''), 'html.parser')
            self._convert_macros(soup, warnings)
            self._convert_links(soup, page, refs, warnings)
            self._convert_images(soup, page, refs, warnings)
            self._convert_anchors(soup, refs)
            for leftover in soup.find_all(['ac:parameter', 'ac:emoticon', 'ac:placeholder']):
                leftover.decompose()
            body = _CustomMarkdownConverter().convert_soup(soup)
        except TransformError:
            raise
        except Exception as e:
            raise TransformError(str(e), page.page_id) from e

        body = re.sub(r'\n{3,}', '\n\n', body).strip()
        markdown = f"# {page.title}\n\n{body}\n" if body else f"# {page.title}\n"

        for warning in warnings:
            logger.debug(f"Page {page.page_id}: {warning}")

        return ConversionResult(markdown=markdown, outbound_refs=list(refs.values()), warnings=warnings)

    @staticmethod
    def render_user_profile(profile: UserProfile) -> str:
        """Render a user profile as a small markdown page."""
        lines = [f"# {profile.display_name}", "", f"- Account ID: `{profile.account_id}`"]
        if profile.email:
            lines.append(f"- Email: {profile.email}")
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------
    # Macros
    # ------------------------------------------------------------------

    def _convert_macros(self, soup: BeautifulSoup, warnings: List[str]) -> None:
        # Innermost first so nested bodies are already converted
        for macro in reversed(soup.find_all('ac:structured-macro')):
            name = macro.get('ac:name', '')
            converter = self._macro_converters.get(name)
            if converter is None:
                warnings.append(f"Unsupported macro '{name}' rendered as plain content")
                converter = self._convert_body_macro
            converter(soup, macro, warnings)

    def _convert_code_macro(self, soup: BeautifulSoup, macro: Tag, warnings: List[str]) -> None:
        language = _macro_parameter(macro, 'language') or ''
        body = macro.find('ac:plain-text-body')
        pre = soup.new_tag('pre')
        if language:
            pre['data-language'] = language
        code = soup.new_tag('code')
        code.string = body.get_text() if body else ''
        pre.append(code)
        macro.replace_with(pre)

    def _convert_callout_macro(self, soup: BeautifulSoup, macro: Tag, warnings: List[str]) -> None:
        label = CALLOUT_MACROS.get(macro.get('ac:name', ''), 'Note')
        title = _macro_parameter(macro, 'title')
        blockquote = soup.new_tag('blockquote')
        heading = soup.new_tag('p')
        strong = soup.new_tag('strong')
        strong.string = f"{label}: {title}" if title else label
        heading.append(strong)
        blockquote.append(heading)
        body = macro.find('ac:rich-text-body')
        if body:
            for child in list(body.contents):
                blockquote.append(child.extract())
        macro.replace_with(blockquote)

    def _convert_body_macro(self, soup: BeautifulSoup, macro: Tag, warnings: List[str]) -> None:
        body = macro.find('ac:rich-text-body')
        if body is None:
            body = macro.find('ac:plain-text-body')
        if body is None:
            macro.decompose()
            return
        wrapper = soup.new_tag('div')
        for child in list(body.contents):
            wrapper.append(child.extract())
        macro.replace_with(wrapper)

    def _drop_macro(self, soup: BeautifulSoup, macro: Tag, warnings: List[str]) -> None:
        macro.decompose()

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _convert_links(
        self,
        soup: BeautifulSoup,
        page: ConfluencePage,
        refs: Dict[str, OutboundReference],
        warnings: List[str],
    ) -> None:
        for link in soup.find_all('ac:link'):
            body = link.find(['ac:link-body', 'ac:plain-text-link-body'])
            text = body.get_text().strip() if body else ''
            ref = self._reference_for_link(link, page, warnings)

            if ref is None:
                link.replace_with(text)
                continue

            refs.setdefault(ref.token, ref)
            anchor = soup.new_tag('a', href=ref.token)
            anchor.string = text or _default_link_text(ref)
            link.replace_with(anchor)

    def _reference_for_link(
        self,
        link: Tag,
        page: ConfluencePage,
        warnings: List[str],
    ) -> Optional[OutboundReference]:
        target_page = link.find('ri:page')
        if target_page is not None:
            content_id = target_page.get('ri:content-id')
            if content_id:
                return OutboundReference(
                    kind=ItemKind.PAGE,
                    token=page_token(content_id),
                    target_remote_id=content_id,
                    original_locator=str(target_page),
                )
            title = target_page.get('ri:content-title')
            if title:
                space = target_page.get('ri:space-key') or page.space_key
                return OutboundReference(
                    kind=ItemKind.PAGE,
                    token=title_token(space, title),
                    target_title=title,
                    target_space=space,
                    original_locator=str(target_page),
                )

        user = link.find('ri:user')
        if user is not None:
            account_id = user.get('ri:account-id') or user.get('ri:userkey')
            if account_id:
                return OutboundReference(
                    kind=ItemKind.USER,
                    token=user_token(account_id),
                    target_remote_id=account_id,
                    original_locator=str(user),
                )

        attachment = link.find('ri:attachment')
        if attachment is not None:
            return self._attachment_reference(attachment, page, warnings)

        if link.get('ac:anchor'):
            return None

        warnings.append(f"Unsupported link target: {link}")
        return None

    def _convert_images(
        self,
        soup: BeautifulSoup,
        page: ConfluencePage,
        refs: Dict[str, OutboundReference],
        warnings: List[str],
    ) -> None:
        for image in soup.find_all('ac:image'):
            alt = image.get('ac:alt') or ''
            attachment = image.find('ri:attachment')
            url = image.find('ri:url')

            if attachment is not None:
                ref = self._attachment_reference(attachment, page, warnings)
                if ref is None:
                    image.replace_with(alt or attachment.get('ri:filename', ''))
                    continue
                refs.setdefault(ref.token, ref)
                src = ref.token
                alt = alt or attachment.get('ri:filename', '')
            elif url is not None and url.get('ri:value'):
                src = url['ri:value']
            else:
                image.decompose()
                continue

            img = soup.new_tag('img', src=src, alt=alt)
            image.replace_with(img)

    def _attachment_reference(
        self,
        attachment: Tag,
        page: ConfluencePage,
        warnings: List[str],
    ) -> Optional[OutboundReference]:
        filename = attachment.get('ri:filename', '')
        if attachment.find('ri:page') is not None:
            warnings.append(f"Attachment '{filename}' on another page is not mirrored")
            return None
        for ref in page.attachments:
            if ref.filename == filename:
                return OutboundReference(
                    kind=ItemKind.ATTACHMENT,
                    token=attachment_token(ref.attachment_id),
                    target_remote_id=ref.attachment_id,
                    original_locator=str(attachment),
                )
        warnings.append(f"Attachment '{filename}' is not listed on the page")
        return None

    def _convert_anchors(self, soup: BeautifulSoup, refs: Dict[str, OutboundReference]) -> None:
        """Turn plain links to Confluence pages into page references."""
        for anchor in soup.find_all('a', href=True):
            href = anchor['href']
            if href.startswith('mirror-ref:'):
                continue
            for pattern in PAGE_URL_PATTERNS:
                match = pattern.search(href)
                if match:
                    ref = OutboundReference(
                        kind=ItemKind.PAGE,
                        token=page_token(match.group(1)),
                        target_remote_id=match.group(1),
                        original_locator=href,
                    )
                    refs.setdefault(ref.token, ref)
                    anchor['href'] = ref.token
                    break


def _unwrap_cdata(xhtml: str) -> str:
    """Replace CDATA sections with escaped text html.parser can keep verbatim."""
    return CDATA_PATTERN.sub(lambda m: html.escape(m.group(1), quote=False), xhtml)


def _macro_parameter(macro: Tag, name: str) -> Optional[str]:
    for param in macro.find_all('ac:parameter', recursive=False):
        if param.get('ac:name') == name:
            return param.get_text(strip=True)
    return None


def _default_link_text(ref: OutboundReference) -> str:
    if ref.kind == ItemKind.USER:
        return f"@{ref.target_remote_id}"
    return ref.target_title or ref.target_remote_id or "link"
