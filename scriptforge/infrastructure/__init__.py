"""Infrastructure layer exports."""

from .guidelines import Guidance, GuidanceProvider, NoGuidance, ProtocolGuidelines
from .llm import CodeGenerator, OpenAICompatibleClient
from .templates import BaselineTemplateProvider, CopyTemplate, ForgeInitTemplate
from .workspaces import TempDirWorkspaceRegistry, WorkspaceRegistry

__all__ = [
    "BaselineTemplateProvider",
    "CodeGenerator",
    "CopyTemplate",
    "ForgeInitTemplate",
    "Guidance",
    "GuidanceProvider",
    "NoGuidance",
    "OpenAICompatibleClient",
    "ProtocolGuidelines",
    "TempDirWorkspaceRegistry",
    "WorkspaceRegistry",
]
