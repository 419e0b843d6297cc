"""Filesafe name conversion with case preservation.

Converts Confluence page titles, user names and attachment file names into
path components that are valid on every common file system.
"""

import re

# Longest stem kept for a single path component
MAX_STEM_LENGTH = 120

FALLBACK_STEM = "untitled"


class FilesafeConverter:
    """Converts remote names to filesafe path components.

    Conversion rules for titles:
    - Spaces -> hyphens (-)
    - Colons (:) -> double hyphens (--)
    - Special characters (/, \\, ?, %, *, |, ", <, >, &, #) and control
      characters -> hyphens (-)
    - Three or more consecutive hyphens collapse to two
    - Leading/trailing hyphens, dots and whitespace are trimmed
    - Case is preserved
    - Empty results become "untitled"

    Examples:
        - "Customer Feedback" -> "Customer-Feedback.md"
        - "API Reference: Getting Started" -> "API-Reference--Getting-Started.md"
        - "Q&A Session" -> "Q-A-Session.md"
    """

    @staticmethod
    def title_to_stem(title: str) -> str:
        """Convert a title to a filesafe name without extension.

        Example:
            >>> FilesafeConverter.title_to_stem("API Reference: Getting Started")
            'API-Reference--Getting-Started'
        """
        stem = title.strip().replace(': ', '--').replace(':', '--')
        stem = re.sub(r'\s', '-', stem)
        stem = re.sub(r'[/\\?%*|"<>&#\x00-\x1f]', '-', stem)
        stem = re.sub(r'-{3,}', '--', stem)
        stem = stem.strip('-. ')
        stem = stem[:MAX_STEM_LENGTH].rstrip('-. ')
        return stem or FALLBACK_STEM

    @classmethod
    def title_to_filename(cls, title: str) -> str:
        """Convert a page title or user name to a markdown file name.

        Examples:
            >>> FilesafeConverter.title_to_filename("Customer Feedback")
            'Customer-Feedback.md'
            >>> FilesafeConverter.title_to_filename("Q&A Session")
            'Q-A-Session.md'
        """
        return f"{cls.title_to_stem(title)}.md"

    @classmethod
    def title_to_dirname(cls, title: str) -> str:
        """Convert an ancestor page title to a directory name."""
        return cls.title_to_stem(title)

    @staticmethod
    def attachment_filename(filename: str) -> str:
        """Make an attachment file name safe while keeping its extension.

        Example:
            >>> FilesafeConverter.attachment_filename("diagram v2.png")
            'diagram-v2.png'
        """
        name = re.sub(r'[/\\?%*|"<>:&#\x00-\x1f]', '-', filename.strip())
        name = re.sub(r'\s', '-', name)
        name = re.sub(r'-{2,}', '-', name)
        name = name.strip('-. ')
        if len(name) > MAX_STEM_LENGTH:
            stem, dot, ext = name.rpartition('.')
            if dot and len(ext) <= 10:
                name = f"{stem[:MAX_STEM_LENGTH - len(ext) - 1]}.{ext}"
            else:
                name = name[:MAX_STEM_LENGTH]
        return name or "attachment"
