"""Prompt text sent to the code-generation service."""
from __future__ import annotations


IMPORT_RULES = (
    "1. ONLY use the exact paths from the remappings above\n"
    "2. DO NOT create or assume any other import paths\n"
    "3. If a required contract/interface is not in the remappings, you must include its full code\n"
    "4. Each import must match exactly one of the remapping paths\n"
)


def build_generation_prompt(address: str, intent: str, guidelines: str, remappings: str) -> str:
    return (
        "Generate a complete Solidity Forge script that implements the following user intent. "
        "The script MUST STRICTLY use ONLY the following remappings for imports - do not deviate or make up paths:\n"
        f"```\n{remappings}\n```\n"
        "Rules for imports:\n"
        f"{IMPORT_RULES}\n"
        "Include all necessary imports, contract definitions, and a run() function. "
        "The contract MUST inherit from forge-std/Script.sol and include "
        "'import {Script} from \"forge-std/Script.sol\";'. "
        "The script must not be a Test. "
        "Never use the console from the std library. "
        f"The run() function must be marked as external and include vm.startBroadcast({address}) "
        "and vm.stopBroadcast(). "
        f"Never use address(this), use the provided address {address} instead. "
        "Add comments explaining the key steps. "
        "If the script needs extra libraries, list them in a separate ```sh block "
        "with one `forge install <owner>/<repo>` line per library.\n"
        f"User intent: {intent}\n"
        f"Guidelines: {guidelines}\n"
        "Format the response as a complete Solidity file with SPDX license and pragma."
    )


def build_fix_prompt(error: str, remappings: str, libraries: list[str], original_code: str) -> str:
    return (
        "Fix the following Solidity Forge script that produced this error:\n"
        f"ERROR:\n{error}\n\n"
        "You MUST use ONLY these exact remappings for imports - do not deviate or make up paths:\n"
        f"```\n{remappings}\n```\n"
        "Rules for fixing:\n"
        f"{IMPORT_RULES}"
        f"5. Available libraries in lib/: {', '.join(libraries)}\n\n"
        "Original code:\n"
        f"```solidity\n{original_code}\n```\n\n"
        "Return the complete fixed script with SPDX license and pragma.\n"
        "Ensure all imports are correct according to the remappings."
    )


def build_classification_prompt(intent: str, protocols: list[str]) -> str:
    return (
        "Based on this user input, determine which protocols the user is trying to interact with. "
        "Return a concise list of the protocols in a json array.\n"
        "Example output: "
        '["uniswap_v3"]\n'
        f"The user input is: {intent}\n"
        f"The protocols are: {', '.join(protocols)}"
    )
