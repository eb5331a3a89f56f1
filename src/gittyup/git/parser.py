"""Parse git conflict markers into structured data.

A conflicted file is split into an ordered list of segments: plain
text shared by both sides, and ConflictHunk blocks. Segment text is
kept exactly as it appears on disk (line endings included), so
render() reproduces the file byte for byte and can also produce the
whole-file version of either side.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field

from gittyup.core.errors import ConflictParseError

OURS_MARKER = "<<<<<<<"
BASE_MARKER = "|||||||"
SEPARATOR = "======="
THEIRS_MARKER = ">>>>>>>"

Side = Literal["ours", "theirs", "base"]


@dataclass
class ConflictHunk:
    """One <<<<<<< ... >>>>>>> block.

    The *_line attributes hold the marker lines verbatim so the
    block can be written back unchanged.
    """

    ours: str
    theirs: str
    base: str | None
    ours_line: str
    separator_line: str
    theirs_line: str
    base_line: str | None = None

    @property
    def ours_ref(self) -> str:
        return self.ours_line[len(OURS_MARKER):].strip() or "ours"

    @property
    def theirs_ref(self) -> str:
        return self.theirs_line[len(THEIRS_MARKER):].strip() or "theirs"

    def render(self) -> str:
        parts = [self.ours_line, self.ours]
        if self.base_line is not None:
            parts += [self.base_line, self.base or ""]
        parts += [self.separator_line, self.theirs, self.theirs_line]
        return "".join(parts)


Segment = str | ConflictHunk


def is_marker(line: str, marker: str) -> bool:
    """Whether line is a conflict marker line as git writes it.

    The separator stands alone on its line; the other markers are
    followed by a space and a label, or by nothing. A longer run of
    the same character (a setext heading underline) is content.
    """
    text = line.rstrip("\r\n")
    if text == marker:
        return True
    return marker != SEPARATOR and text.startswith(marker + " ")


def _find(lines: list[str], start: int, marker: str, stop: str | None = None):
    """Index of the first marker line, or None when the stop marker
    (or the end of input) comes first."""
    for j in range(start, len(lines)):
        if is_marker(lines[j], marker):
            return j
        if stop and is_marker(lines[j], stop):
            return None
    return None


def parse(file_content: str) -> list[Segment]:
    """Split file content into plain text and conflict hunks.

    Raises:
        ConflictParseError: If a block has no separator or end marker
    """
    segments: list[Segment] = []
    lines = file_content.splitlines(keepends=True)
    plain: list[str] = []
    i = 0

    while i < len(lines):
        line = lines[i]
        if not is_marker(line, OURS_MARKER):
            plain.append(line)
            i += 1
            continue

        base_idx = _find(lines, i + 1, BASE_MARKER, stop=SEPARATOR)
        separator_idx = _find(lines, (base_idx or i) + 1, SEPARATOR)
        if separator_idx is None:
            raise ConflictParseError(
                f"Malformed conflict at line {i + 1}: no separator found"
            )
        end_idx = _find(lines, separator_idx + 1, THEIRS_MARKER)
        if end_idx is None:
            raise ConflictParseError(
                f"Malformed conflict at line {i + 1}: no end marker found"
            )

        if plain:
            segments.append("".join(plain))
            plain = []

        ours_end = base_idx if base_idx is not None else separator_idx
        segments.append(ConflictHunk(
            ours="".join(lines[i + 1:ours_end]),
            theirs="".join(lines[separator_idx + 1:end_idx]),
            base=(
                "".join(lines[base_idx + 1:separator_idx])
                if base_idx is not None else None
            ),
            ours_line=line,
            separator_line=lines[separator_idx],
            theirs_line=lines[end_idx],
            base_line=lines[base_idx] if base_idx is not None else None,
        ))
        i = end_idx + 1

    if plain:
        segments.append("".join(plain))
    return segments


def hunks(segments: list[Segment]) -> list[ConflictHunk]:
    return [s for s in segments if isinstance(s, ConflictHunk)]


def render(segments: list[Segment], side: Side | None = None) -> str:
    """Rebuild a file from segments.

    With side=None the conflict markers are kept; otherwise every
    hunk is replaced by that side's text. A hunk without a base
    section contributes nothing to the base version.
    """
    out = []
    for segment in segments:
        if isinstance(segment, str):
            out.append(segment)
        elif side is None:
            out.append(segment.render())
        elif side == "base":
            out.append(segment.base or "")
        else:
            out.append(getattr(segment, side))
    return "".join(out)


class ConflictedFile(BaseModel):
    """A file left with conflict markers by a merge or cherry-pick.

    ours/theirs/base are whole-file versions, so staging one of them
    never drops the lines that merged cleanly.
    """

    path: str = Field(description="Path relative to the repository root")
    ours: str = Field(description="File as on the target branch")
    theirs: str = Field(description="File as on the incoming side")
    base: str = Field(
        default="",
        description="Common-ancestor version; empty without diff3 markers"
    )
    resolved: str | None = Field(
        default=None,
        description="Content staged as the resolution, once known"
    )
    hunks: list[ConflictHunk] = Field(default_factory=list)

    @classmethod
    def from_content(cls, path: str, content: str) -> "ConflictedFile":
        segments = parse(content)
        blocks = hunks(segments)
        has_base = any(h.base is not None for h in blocks)
        return cls(
            path=path,
            ours=render(segments, "ours"),
            theirs=render(segments, "theirs"),
            base=render(segments, "base") if has_base else "",
            hunks=blocks,
        )
