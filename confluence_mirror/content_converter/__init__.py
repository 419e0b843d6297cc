"""Content converter for Confluence storage format to markdown."""

from .markdown_converter import MarkdownConverter
from .reference_tokens import TOKEN_PATTERN

__all__ = ['MarkdownConverter', 'TOKEN_PATTERN']
