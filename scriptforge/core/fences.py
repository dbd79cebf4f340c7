"""Parsing of fenced code blocks in generated text."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from scriptforge.core.errors import NoSourceBlock

logger = logging.getLogger(__name__)

FENCE = "```"
SHELL_MARKERS = frozenset({"sh", "bash", "shell", "console", "zsh"})
INSTALL_DIRECTIVE = "forge install"


@dataclass(slots=True)
class FencedBlock:
    language: str
    body: str
    terminated: bool = True

    @property
    def is_shell(self) -> bool:
        return self.language in SHELL_MARKERS

    @property
    def is_empty(self) -> bool:
        return not self.body.strip()


def _info_string(line: str) -> str:
    info = line.strip()[len(FENCE):].strip()
    return info.split()[0].lower() if info else ""


def parse_fenced_blocks(text: str) -> list[FencedBlock]:
    """Split ``text`` into its fenced blocks, in order of appearance.

    A fence opens on a line starting with three backticks (optionally followed
    by a language tag) and closes on a bare three-backtick line. A block still
    open at the end of the text is returned with ``terminated=False``.
    """

    blocks: list[FencedBlock] = []
    language: str | None = None
    body: list[str] = []

    for line in text.splitlines():
        stripped = line.strip()
        if language is None:
            if stripped.startswith(FENCE):
                language = _info_string(stripped)
                body = []
            continue
        if stripped == FENCE:
            blocks.append(FencedBlock(language=language, body="\n".join(body)))
            language = None
            continue
        body.append(line)

    if language is not None:
        blocks.append(FencedBlock(language=language, body="\n".join(body), terminated=False))
    return blocks


def extract_source(blocks: list[FencedBlock]) -> str:
    """Return the program source: the first block that is not a shell block."""

    candidates = [block for block in blocks if not block.is_shell]
    if not candidates:
        raise NoSourceBlock("No Solidity code block found")
    block = candidates[0]
    if not block.terminated:
        raise NoSourceBlock("Solidity code block is not terminated")
    if block.is_empty:
        raise NoSourceBlock("Solidity code block is empty")
    if len(candidates) > 1:
        logger.info("Generated text has %d source blocks; using the first", len(candidates))
    return block.body.strip()


def parse_install_directive(line: str) -> str | None:
    """Return the component named by a ``forge install`` line, if any."""

    stripped = line.strip()
    if stripped.startswith("$"):
        stripped = stripped[1:].strip()
    if not stripped.startswith(INSTALL_DIRECTIVE):
        return None
    tokens = stripped.split()
    if len(tokens) < 3:
        return None
    for token in tokens[2:]:
        if not token.startswith("-"):
            return token.lower()
    return None


def extract_install_components(blocks: list[FencedBlock]) -> list[str]:
    """Collect components from every shell block carrying install directives."""

    components: list[str] = []
    for block in blocks:
        if not block.is_shell or INSTALL_DIRECTIVE not in block.body:
            continue
        for line in block.body.splitlines():
            if INSTALL_DIRECTIVE not in line:
                continue
            component = parse_install_directive(line)
            if component is None:
                logger.warning("Skipping malformed install directive: %r", line.strip())
                continue
            if component not in components:
                components.append(component)
    return components
