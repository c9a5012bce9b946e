"""Pure content transforms for masterlist edits.

Each transform takes the current file text and one parameter and returns the
new text. They never touch the network; ``ContentMutator.update_file``
applies them inside its transaction.
"""

import re
from typing import Dict, Tuple

from .content_mutator import FileTransform

LOOT_VERSION_PATTERN = re.compile(r'version\("LOOT", "[\d.]+", <\)')
VERSION_NUMBER_PATTERN = re.compile(r"^\d+(\.\d+)*$")


def replace_loot_version(content: str, new_version: str) -> str:
    """Point the "LOOT update available" condition at ``new_version``.

    Only the first ``version("LOOT", "<x.y.z>", <)`` token is replaced.

    Raises:
        ValueError: If ``new_version`` is not a dotted numeric version
    """
    if not VERSION_NUMBER_PATTERN.match(new_version):
        raise ValueError(f"Invalid version number: {new_version!r}")
    replacement = f'version("LOOT", "{new_version}", <)'
    return LOOT_VERSION_PATTERN.sub(lambda _: replacement, content, count=1)


def rewrite_url(content: str, urls: Tuple[str, str]) -> str:
    """Replace every occurrence of one URL with another.

    Args:
        content: Current file text
        urls: ``(old_url, new_url)`` pair, typically a redirect found by the
            link checker and its target
    """
    old_url, new_url = urls
    if not old_url:
        raise ValueError("URL to replace cannot be empty")
    return content.replace(old_url, new_url)


TRANSFORMS: Dict[str, FileTransform] = {
    "loot-version": replace_loot_version,
    "rewrite-url": rewrite_url,
}
