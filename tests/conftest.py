from __future__ import annotations

import asyncio
import sys
import textwrap
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from scriptforge.core.schema import ChatMessage

FAKE_FORGE = textwrap.dedent(
    '''
    import json
    import sys
    from pathlib import Path

    OUTPUT = {
        "transactions": [
            {
                "hash": None,
                "transactionType": "CALL",
                "contractName": "Token",
                "contractAddress": "0x00000000000000000000000000000000000000aa",
                "function": "transfer(address,uint256)",
                "arguments": ["0x00000000000000000000000000000000000000bb", "1000"],
                "transaction": {
                    "from": "0x00000000000000000000000000000000000000cc",
                    "to": "0x00000000000000000000000000000000000000aa",
                    "gas": "0x1d4c0",
                    "value": "0x0",
                    "input": "0xa9059cbb",
                    "nonce": "0x0",
                    "chainId": "0x1",
                },
            }
        ],
        "receipts": [],
        "libraries": [],
        "pending": [],
        "returns": {},
        "timestamp": 1700000000,
        "chain": 1,
        "commit": "abc123",
    }

    args = sys.argv[1:]
    command = args[0] if args else ""
    cwd = Path.cwd()

    if command == "init":
        (cwd / "foundry.toml").write_text("[profile.default]\\n")
        (cwd / "lib" / "forge-std").mkdir(parents=True, exist_ok=True)
        print("Initialized forge project")
    elif command == "submodule":
        print("Submodules initialised")
    elif command == "install":
        name = args[1].rstrip("/").split("/")[-1].split("@")[0]
        if name == "missing":
            print("Error: repository not found", file=sys.stderr)
            sys.exit(1)
        print(f"Installing {name}")
        for percent in range(0, 101, 25):
            print(f"Receiving objects: {percent}% ({percent}/100)", file=sys.stderr)
        target = cwd / "lib" / name
        target.mkdir(parents=True, exist_ok=True)
        if name == "withnpm":
            (target / "package.json").write_text("{}")
        print(f"Installed {name}")
    elif command == "remappings":
        print("forge-std/=lib/forge-std/src/")
    elif command == "script":
        source = (cwd / args[1]).read_text()
        if "REVERT" in source:
            print("Error: script failed: revert: insufficient balance", file=sys.stderr)
            sys.exit(1)
        if "NOOUTPUT" in source:
            print("Script ran successfully.")
            sys.exit(0)
        chain = "10" if "OPTIMISM" in source else "1"
        target = cwd / "broadcast" / "Script.s.sol" / chain / "dry-run" / "run-latest.json"
        target.parent.mkdir(parents=True, exist_ok=True)
        if "BADJSON" in source:
            target.write_text("{not json")
        else:
            target.write_text(json.dumps(OUTPUT))
        print("Script ran successfully.")
    else:
        print(f"unknown command {command}", file=sys.stderr)
        sys.exit(2)
    '''
)

FAKE_NPM = textwrap.dedent(
    '''
    import sys
    from pathlib import Path

    (Path.cwd() / "node_modules").mkdir(exist_ok=True)
    print("added 1 package")
    '''
)


def solidity_response(body: str = "", *, installs: tuple[str, ...] = ()) -> str:
    """Generated text with a source block and an optional install block."""

    source = (
        "// SPDX-License-Identifier: MIT\n"
        "pragma solidity ^0.8.20;\n"
        'import {Script} from "forge-std/Script.sol";\n'
        "contract Run is Script {\n"
        "    function run() external {\n"
        f"        {body}\n"
        "    }\n"
        "}"
    )
    text = f"Here is the script.\n```solidity\n{source}\n```\n"
    if installs:
        lines = "\n".join(f"forge install {component}" for component in installs)
        text += f"Install the libraries first:\n```sh\n{lines}\n```\n"
    return text


class ScriptedGenerator:
    """Code generator replaying canned responses in small chunks."""

    def __init__(self, responses: list[str], classification: str = "[]") -> None:
        self.responses = list(responses)
        self.classification = classification
        self.calls: list[list[ChatMessage]] = []

    async def stream_chat(self, messages):
        self.calls.append(list(messages))
        text = self.responses.pop(0)
        for start in range(0, len(text), 40):
            yield text[start:start + 40]

    async def complete(self, messages):
        return self.classification


class GatedGenerator(ScriptedGenerator):
    """Generator that holds its first chunk until ``release`` is set."""

    def __init__(self, responses: list[str]) -> None:
        super().__init__(responses)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def stream_chat(self, messages):
        self.started.set()
        await self.release.wait()
        async for chunk in super().stream_chat(messages):
            yield chunk


@pytest.fixture()
def fake_forge(tmp_path) -> tuple[str, ...]:
    script = tmp_path / "fake_forge.py"
    script.write_text(FAKE_FORGE, encoding="utf-8")
    return (sys.executable, str(script))


@pytest.fixture()
def fake_npm(tmp_path) -> tuple[str, ...]:
    script = tmp_path / "fake_npm.py"
    script.write_text(FAKE_NPM, encoding="utf-8")
    return (sys.executable, str(script))


@pytest.fixture()
def baseline(tmp_path) -> Path:
    base = tmp_path / "baseline"
    (base / "lib" / "forge-std" / "src").mkdir(parents=True)
    (base / "script").mkdir()
    (base / "foundry.toml").write_text("[profile.default]\nsrc = 'src'\n", encoding="utf-8")
    return base
