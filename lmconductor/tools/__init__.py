"""
Tool layer: the registry of caller-supplied functions the model may call and
the executor that runs them on the model's behalf.
"""

from lmconductor.tools.executor import ToolExecutor, error_payload, serialize_result
from lmconductor.tools.registry import RegisteredTool, ToolRegistry, validate_parameters

__all__ = [
    "RegisteredTool",
    "ToolExecutor",
    "ToolRegistry",
    "error_payload",
    "serialize_result",
    "validate_parameters",
]
