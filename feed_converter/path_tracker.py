"""
Ancestor stack tracking for streamed XML events.
"""

from typing import List


class PathTracker:
    """Tracks the open-tag stack and whether each open tag has children."""

    def __init__(self):
        self._stack: List[str] = []
        self._has_children: List[bool] = []

    @property
    def depth(self) -> int:
        return len(self._stack)

    def on_open(self, tag_name: str) -> None:
        """Push a tag, marking the current top as a parent."""
        if self._stack:
            self._has_children[-1] = True
        self._stack.append(tag_name)
        self._has_children.append(False)

    def on_close(self) -> bool:
        """
        Pop the current tag.

        Returns:
            True if the popped tag had child elements
        """
        if not self._stack:
            return False
        self._stack.pop()
        return self._has_children.pop()

    def current_path(self) -> List[str]:
        return list(self._stack)

    def parent(self) -> str:
        """Name of the tag enclosing the current top, or '' at top level."""
        return self._stack[-2] if len(self._stack) > 1 else ''

    def path_relative_to(self, tag_name: str) -> List[str]:
        """
        Suffix of the current path after the last occurrence of tag_name.

        The last occurrence is used so a root tag name that also appears as a
        nested field name still resolves to the innermost item.
        """
        for index in range(len(self._stack) - 1, -1, -1):
            if self._stack[index] == tag_name:
                return self._stack[index + 1:]
        return []
