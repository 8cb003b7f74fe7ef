"""Script block extraction and splicing."""

import re
from collections.abc import Callable, Iterator

from .types import ScriptBlock, SpliceResult

# A block opens with ```sjs and closes with sjs```; group 1 is the raw block,
# group 2 the script source.
SCRIPT_BLOCK_PATTERN = re.compile(r"(```sjs\s*\n*(.*?)sjs```)", re.S | re.M)
EXPECTED_GROUPS = 2


def _block_from_match(body: str, match: re.Match[str]) -> ScriptBlock | None:
    """Build a ScriptBlock, or None when the match has an unexpected shape."""
    if match.re.groups != EXPECTED_GROUPS or match.group(2) is None:
        return None

    source_start = match.start(2)
    source = match.group(2)

    # The opener's \s* also eats the indentation of the first source line;
    # give it back so indented blocks can be dedented as a whole.
    line_start = body.rfind("\n", 0, source_start) + 1
    if line_start > match.start(1):
        indent = body[line_start:source_start]
        if indent.isspace():
            source = indent + source

    return ScriptBlock(
        raw_text=match.group(1),
        source=source,
        start_line=body.count("\n", 0, source_start) + 1,
        start=match.start(1),
        end=match.end(1),
    )


def extract_blocks(body: str) -> Iterator[ScriptBlock]:
    """Lazily yield the script blocks of a body in document order.

    An opening fence without a matching closing fence is not a block, so
    malformed fences stay in the body as literal text.

    Args:
        body: Template body

    Yields:
        ScriptBlock per fenced region
    """
    for match in SCRIPT_BLOCK_PATTERN.finditer(body):
        block = _block_from_match(body, match)
        if block is not None:
            yield block


def split_body(body: str) -> Iterator[str | ScriptBlock]:
    """Yield literal spans and script blocks in document order.

    Concatenating the literal spans with each block's raw_text reproduces
    the body exactly. Empty literal spans are skipped.
    """
    position = 0
    for block in extract_blocks(body):
        if block.start > position:
            yield body[position : block.start]
        yield block
        position = block.end
    if position < len(body):
        yield body[position:]


def splice(body: str, replace: Callable[[ScriptBlock], str]) -> SpliceResult:
    """Replace every script block with the text returned by `replace`.

    Blocks are replaced strictly in document order; an exception raised by
    `replace` aborts splicing and propagates.

    Args:
        body: Template body
        replace: Produces the substitution for one block

    Returns:
        SpliceResult with the spliced body and the net line delta
    """
    parts: list[str] = []
    line_delta = 0
    block_count = 0

    for part in split_body(body):
        if isinstance(part, str):
            parts.append(part)
            continue
        output = replace(part)
        line_delta += part.line_count - output.count("\n")
        block_count += 1
        parts.append(output)

    return SpliceResult(body="".join(parts), line_delta=line_delta, block_count=block_count)
