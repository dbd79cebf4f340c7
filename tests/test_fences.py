from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from scriptforge.core.errors import NoSourceBlock
from scriptforge.core.fences import (
    extract_install_components,
    extract_source,
    parse_fenced_blocks,
    parse_install_directive,
)


RESPONSE = """Sure, here you go.

```solidity
pragma solidity ^0.8.20;
contract Run {}
```

Then install:

```bash
$ forge install OpenZeppelin/openzeppelin-contracts
forge install --no-git uniswap/v3-periphery@v1.0.0
forge install
forge install openzeppelin/openzeppelin-contracts
```
"""


def test_parse_fenced_blocks_reads_languages_and_bodies():
    blocks = parse_fenced_blocks(RESPONSE)

    assert [block.language for block in blocks] == ["solidity", "bash"]
    assert blocks[0].body == "pragma solidity ^0.8.20;\ncontract Run {}"
    assert all(block.terminated for block in blocks)


def test_extract_source_picks_first_non_shell_block():
    text = "```sh\nforge install a/b\n```\n```\ncontract A {}\n```\n```solidity\ncontract B {}\n```\n"

    assert extract_source(parse_fenced_blocks(text)) == "contract A {}"


def test_extract_install_components_dedupes_and_skips_malformed():
    components = extract_install_components(parse_fenced_blocks(RESPONSE))

    assert components == ["openzeppelin/openzeppelin-contracts", "uniswap/v3-periphery@v1.0.0"]


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("forge install foundry-rs/forge-std", "foundry-rs/forge-std"),
        ("  $ forge install --no-commit Org/Repo", "org/repo"),
        ("forge install", None),
        ("forge install --no-commit", None),
        ("npm install foo", None),
    ],
)
def test_parse_install_directive(line, expected):
    assert parse_install_directive(line) == expected


def test_missing_source_block_is_an_error():
    with pytest.raises(NoSourceBlock, match="No Solidity code block found"):
        extract_source(parse_fenced_blocks("no code here\n```sh\nforge install a/b\n```\n"))


def test_unterminated_source_block_is_an_error():
    blocks = parse_fenced_blocks("```solidity\ncontract A {\n")

    assert blocks[0].terminated is False
    with pytest.raises(NoSourceBlock, match="not terminated"):
        extract_source(blocks)


def test_empty_source_block_is_an_error():
    with pytest.raises(NoSourceBlock, match="empty"):
        extract_source(parse_fenced_blocks("```solidity\n\n```\n"))


def test_text_without_shell_block_has_no_components():
    assert extract_install_components(parse_fenced_blocks("```solidity\ncontract A {}\n```\n")) == []
