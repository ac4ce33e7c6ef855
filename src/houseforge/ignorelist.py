"""
houseforge.ignorelist - Ordered Line Model of .gitignore
========================================================

houseforge reuses the project's ``.gitignore`` as a marker: a managed file
listed there still matches its template and need not be committed; a
managed file that was customized is removed from the list so it stays
under version control.

Rather than patching the text with regular expressions, the file is parsed
into an ordered list of lines, edited with insert-if-absent /
remove-if-present operations, and serialized deterministically.

Serialization Rules
-------------------
- Runs of blank lines collapse to a single blank line.
- Leading and trailing blank lines are dropped.
- The text ends with exactly one newline.
- The explanatory header is written once, before the first managed entry.

Usage
-----
>>> ignore = IgnoreList.from_text("node_modules/\\n")
>>> ignore.add(".cursorrules")
True
>>> print(ignore.render(), end="")
node_modules/
<BLANKLINE>
# The files below are generated by houseforge and need not be committed.
# Run `houseforge update` to regenerate them.
.cursorrules
"""

from __future__ import annotations

from pathlib import Path


HEADER_LINES: tuple[str, ...] = (
    "# The files below are generated by houseforge and need not be committed.",
    "# Run `houseforge update` to regenerate them.",
)


class IgnoreList:
    """
    Ordered, editable view of an ignore file.

    Parameters
    ----------
    lines : list[str]
        Lines without their line terminators.

    path : Path | None
        File the list was read from; required for :meth:`save`.

    exists : bool
        Whether the file existed when loaded. A missing ignore file is
        never created by :meth:`save`.
    """

    def __init__(
        self,
        lines: list[str] | None = None,
        *,
        path: Path | None = None,
        exists: bool = True,
    ) -> None:
        self.lines: list[str] = list(lines or [])
        self.path = path
        self.exists = exists
        self._dirty = False

    @classmethod
    def from_text(cls, text: str, *, path: Path | None = None) -> IgnoreList:
        """Parse ignore-file text."""
        return cls(text.splitlines(), path=path)

    @classmethod
    def load(cls, path: Path) -> IgnoreList:
        """
        Read an ignore file.

        A missing file yields an empty list with ``exists`` False.
        """
        if not path.exists():
            return cls(path=path, exists=False)
        return cls.from_text(path.read_text(encoding="utf-8"), path=path)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def contains(self, entry: str) -> bool:
        """Whether ``entry`` appears as an exact line."""
        return any(line.strip() == entry for line in self.lines)

    def __contains__(self, entry: object) -> bool:
        return isinstance(entry, str) and self.contains(entry)

    @property
    def has_header(self) -> bool:
        return HEADER_LINES[0] in (line.strip() for line in self.lines)

    @property
    def changed(self) -> bool:
        """Whether :meth:`add` or :meth:`remove` modified the list."""
        return self._dirty

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def add(self, entry: str) -> bool:
        """
        Insert ``entry`` at the end if it is not already listed.

        Returns
        -------
        bool
            True if the list changed.
        """
        if self.contains(entry):
            return False

        while self.lines and not self.lines[-1].strip():
            self.lines.pop()

        if not self.has_header:
            if self.lines:
                self.lines.append("")
            self.lines.extend(HEADER_LINES)

        self.lines.append(entry)
        self._dirty = True
        return True

    def remove(self, entry: str) -> bool:
        """
        Delete every line equal to ``entry``.

        Returns
        -------
        bool
            True if the list changed.
        """
        kept = [line for line in self.lines if line.strip() != entry]
        if len(kept) == len(self.lines):
            return False
        self.lines = kept
        self._dirty = True
        return True

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def render(self) -> str:
        """Serialize following the rules in the module docstring."""
        out: list[str] = []
        for line in self.lines:
            blank = not line.strip()
            if blank and (not out or not out[-1].strip()):
                continue
            out.append("" if blank else line.rstrip())

        while out and not out[-1].strip():
            out.pop()

        if not out:
            return ""
        return "\n".join(out) + "\n"

    def save(self) -> bool:
        """
        Write the list back if it changed and the file exists.

        Returns
        -------
        bool
            True if the file was written.
        """
        if self.path is None:
            msg = "IgnoreList has no path to save to"
            raise ValueError(msg)

        if not self.exists or not self._dirty:
            return False

        text = self.render()
        current = self.path.read_text(encoding="utf-8")
        if text == current:
            self._dirty = False
            return False

        self.path.write_text(text, encoding="utf-8")
        self._dirty = False
        return True
