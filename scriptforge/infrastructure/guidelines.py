"""Protocol guideline retrieval.

Guidelines are markdown files named after the protocol they describe
(``uniswap_v3.md``). The code-generation service classifies an intent against
the available names and the matching files are handed to the generation
prompt. Without a guideline directory the pipeline runs with
:class:`NoGuidance`, which never calls the service.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from scriptforge.core.prompts import build_classification_prompt
from scriptforge.core.schema import ChatMessage
from scriptforge.infrastructure.llm import CodeGenerator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Guidance:
    """Container returned by :class:`GuidanceProvider` implementations."""

    text: str = ""
    protocols: list[str] = field(default_factory=list)


class GuidanceProvider(Protocol):
    """Contract for guideline sources."""

    def available_protocols(self) -> list[str]: ...

    async def get_guideline(self, generator: CodeGenerator, intent: str) -> Guidance:
        """Map an intent to reference text; errors of ``generator`` propagate."""


class NoGuidance:
    """Fallback provider used when no guideline directory is configured."""

    def available_protocols(self) -> list[str]:
        return []

    async def get_guideline(self, generator: CodeGenerator, intent: str) -> Guidance:
        return Guidance()


def parse_protocol_list(content: str) -> list[str]:
    """Read the first line that looks like a JSON array of protocol names."""

    for line in content.splitlines():
        candidate = line.strip()
        if not candidate.startswith("["):
            continue
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            logger.warning("Classifier returned an unreadable protocol list: %r", candidate)
            return []
        if not isinstance(parsed, list):
            return []
        return [str(item) for item in parsed if isinstance(item, (str, int))]
    return []


class ProtocolGuidelines:
    """Guidelines loaded once from ``*.md`` files in a directory."""

    def __init__(self, guidelines_dir: Path) -> None:
        self._dir = guidelines_dir
        self._guidelines: dict[str, str] = {}
        if guidelines_dir.is_dir():
            for path in sorted(guidelines_dir.glob("*.md")):
                self._guidelines[path.stem] = path.read_text(encoding="utf-8")
        logger.info("Loaded %d protocol guidelines from %s", len(self._guidelines), guidelines_dir)

    def available_protocols(self) -> list[str]:
        return list(self._guidelines)

    async def get_guideline(self, generator: CodeGenerator, intent: str) -> Guidance:
        protocols = self.available_protocols()
        if not protocols:
            return Guidance()

        prompt = build_classification_prompt(intent, protocols)
        content = await generator.complete([ChatMessage(role="user", content=prompt)])

        matched: list[str] = []
        for name in parse_protocol_list(content):
            if name in self._guidelines and name not in matched:
                matched.append(name)
            elif name not in self._guidelines:
                logger.warning("Classifier named unknown protocol %r", name)

        text = "".join(f"{self._guidelines[name]}\n\n" for name in matched)
        return Guidance(text=text, protocols=matched)
