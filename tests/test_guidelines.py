from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from conftest import ScriptedGenerator

from scriptforge.core.prompts import build_classification_prompt
from scriptforge.infrastructure import NoGuidance, ProtocolGuidelines
from scriptforge.infrastructure.guidelines import parse_protocol_list


def _guidelines_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "guidelines"
    directory.mkdir()
    (directory / "uniswap_v3.md").write_text("Use the SwapRouter at 0xE592.", encoding="utf-8")
    (directory / "aave_v3.md").write_text("Approve the Pool before supply.", encoding="utf-8")
    (directory / "notes.txt").write_text("ignored", encoding="utf-8")
    return directory


def test_guidelines_are_loaded_by_file_stem(tmp_path):
    provider = ProtocolGuidelines(_guidelines_dir(tmp_path))

    assert provider.available_protocols() == ["aave_v3", "uniswap_v3"]


def test_classified_protocols_select_guideline_text(tmp_path):
    provider = ProtocolGuidelines(_guidelines_dir(tmp_path))
    generator = ScriptedGenerator([], classification='Matches:\n["uniswap_v3", "curve", "uniswap_v3"]\n')

    guidance = asyncio.run(provider.get_guideline(generator, "swap 1 ETH for USDC"))

    assert guidance.protocols == ["uniswap_v3"]
    assert guidance.text == "Use the SwapRouter at 0xE592.\n\n"


def test_unreadable_classification_means_no_guidance(tmp_path):
    provider = ProtocolGuidelines(_guidelines_dir(tmp_path))
    generator = ScriptedGenerator([], classification="I think uniswap")

    guidance = asyncio.run(provider.get_guideline(generator, "swap"))

    assert guidance.protocols == []
    assert guidance.text == ""


def test_missing_directory_and_no_guidance_provider(tmp_path):
    assert ProtocolGuidelines(tmp_path / "absent").available_protocols() == []

    guidance = asyncio.run(NoGuidance().get_guideline(ScriptedGenerator([]), "anything"))
    assert guidance.text == "" and guidance.protocols == []


def test_parse_protocol_list_variants():
    assert parse_protocol_list('["a", "b"]') == ["a", "b"]
    assert parse_protocol_list("text\n  []\n") == []
    assert parse_protocol_list("[not json") == []
    assert parse_protocol_list("no list at all") == []


def test_classification_prompt_names_protocols():
    prompt = build_classification_prompt("lend USDC", ["aave_v3", "compound"])

    assert "lend USDC" in prompt
    assert "aave_v3" in prompt and "compound" in prompt
