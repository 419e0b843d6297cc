"""Placeholder tokens for cross-document references.

The converter writes a token wherever a link target's local path is not yet
known. Tokens are URL-safe so markdown link syntax keeps them intact, and
`TOKEN_PATTERN` finds them again in staged content.

Formats:
    mirror-ref:page:<page id>
    mirror-ref:title:<space key>:<percent-encoded title>
    mirror-ref:user:<account id>
    mirror-ref:attachment:<attachment id>
"""

import re
from urllib.parse import quote

TOKEN_PREFIX = "mirror-ref:"

TOKEN_PATTERN = re.compile(r'mirror-ref:(?:page|title|user|attachment):[^\s()<>"\'\[\]]+')


def page_token(page_id: str) -> str:
    return f"{TOKEN_PREFIX}page:{page_id}"


def title_token(space_key: str, title: str) -> str:
    """Token for a page known only by space and title.

    Example:
        >>> title_token("TEAM", "Getting Started")
        'mirror-ref:title:TEAM:Getting%20Started'
    """
    return f"{TOKEN_PREFIX}title:{quote(space_key, safe='')}:{quote(title, safe='')}"


def user_token(account_id: str) -> str:
    return f"{TOKEN_PREFIX}user:{quote(account_id, safe=':')}"


def attachment_token(attachment_id: str) -> str:
    return f"{TOKEN_PREFIX}attachment:{attachment_id}"

