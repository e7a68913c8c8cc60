from .base import SandboxTool
from .command import ExecuteCommandTool
from .files import FileOperationsTool
from .browser import SiteInspectorTool
from .question import FollowupQuestionTool
from .desktop import ComputerActionTool
from .computer import Computer, default_tools
from .remote import WorkerClient, WorkerTool, register_worker_tools

__all__ = [
    "SandboxTool",
    "ExecuteCommandTool",
    "FileOperationsTool",
    "SiteInspectorTool",
    "FollowupQuestionTool",
    "ComputerActionTool",
    "Computer",
    "default_tools",
    "WorkerClient",
    "WorkerTool",
    "register_worker_tools",
]
