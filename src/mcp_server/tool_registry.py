"""
Tool Registry for MCP Server

Runtime tool registration, discovery and execution.

Key Features:
- Tool registration and discovery
- Parameter validation against the declared (nested) parameter schema
- Execution with timing and error capture; handler failures never reach the transport
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from common.logging import get_logger

logger = get_logger(__name__)


class ToolParameterType(str, Enum):
    """Standard parameter types for MCP tools."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class ToolParameter(BaseModel):
    """
    MCP tool parameter definition.

    Object parameters describe their members in ``properties``; array
    parameters describe their elements in ``items``.
    """

    name: str = ""
    type: ToolParameterType
    description: str = ""
    required: bool = False
    enum: Optional[List[Any]] = None
    properties: Optional[List["ToolParameter"]] = None
    items: Optional["ToolParameter"] = None


class Tool(BaseModel):
    """Standard MCP tool definition."""

    name: str
    description: str
    parameters: List[ToolParameter] = Field(default_factory=list)


@dataclass
class ToolExecution:
    """Result of tool execution."""

    success: bool
    result: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    execution_time_ms: Optional[float] = None


class ToolHandler(ABC):
    """Abstract base class for tool handlers."""

    @abstractmethod
    async def execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Execute the tool with given arguments."""
        pass

    @abstractmethod
    def get_tool_definition(self) -> Tool:
        """Get the tool definition for this handler."""
        pass


class ToolRegistry:
    """Registry for managing MCP tools and their handlers."""

    def __init__(self):
        self.tools: Dict[str, Tool] = {}
        self.handlers: Dict[str, ToolHandler] = {}

    def register_tool_handler(self, handler: ToolHandler) -> None:
        """Register a tool together with its handler."""
        tool = handler.get_tool_definition()
        self.tools[tool.name] = tool
        self.handlers[tool.name] = handler

        logger.info(
            event="tool_handler_registered",
            tool_name=tool.name,
            parameters_count=len(tool.parameters),
            handler_type=type(handler).__name__,
        )

    def list_tools(self) -> List[Tool]:
        """List all registered tools."""
        return list(self.tools.values())

    async def execute_tool(self, tool_name: str, arguments: Dict[str, Any]) -> ToolExecution:
        """
        Execute a tool with given arguments.

        Args:
            tool_name: Name of the tool to execute
            arguments: Arguments to pass to the tool

        Returns:
            ToolExecution result with success status and results
        """
        start_time = time.perf_counter()

        if tool_name not in self.tools:
            return ToolExecution(
                success=False,
                error=f"Tool '{tool_name}' not found. Available tools: {list(self.tools.keys())}",
            )

        if tool_name not in self.handlers:
            return ToolExecution(success=False, error=f"No handler found for tool '{tool_name}'")

        tool = self.tools[tool_name]
        handler = self.handlers[tool_name]

        validation_error = self._validate_arguments(tool, arguments)
        if validation_error:
            logger.warning(
                event="tool_arguments_rejected", tool_name=tool_name, error=validation_error
            )
            return ToolExecution(
                success=False, error=f"Argument validation failed: {validation_error}"
            )

        try:
            result = await handler.execute(arguments)
        except Exception as e:
            execution_time = (time.perf_counter() - start_time) * 1000
            logger.error(
                event="tool_execution_error",
                tool_name=tool_name,
                error=str(e),
                error_type=type(e).__name__,
                execution_time_ms=round(execution_time, 2),
            )
            return ToolExecution(success=False, error=str(e), execution_time_ms=execution_time)

        execution_time = (time.perf_counter() - start_time) * 1000
        logger.info(
            event="tool_executed",
            tool_name=tool_name,
            execution_time_ms=round(execution_time, 2),
        )
        return ToolExecution(success=True, result=result, execution_time_ms=execution_time)

    def _validate_arguments(self, tool: Tool, arguments: Dict[str, Any]) -> Optional[str]:
        """
        Validate tool arguments against parameter schema.

        Returns:
            None if valid, error message if invalid
        """
        known = {param.name for param in tool.parameters}
        for param_name in arguments:
            if param_name not in known:
                return f"Unknown parameter '{param_name}'"

        return self._validate_members(tool.parameters, arguments, prefix="")

    def _validate_members(
        self, parameters: List[ToolParameter], values: Dict[str, Any], prefix: str
    ) -> Optional[str]:
        """Check required members and member types of an object value."""
        for param in parameters:
            path = f"{prefix}{param.name}"
            if param.name not in values:
                if param.required:
                    return f"Required parameter '{path}' is missing"
                continue

            type_error = self._validate_parameter_type(param, values[param.name], path)
            if type_error:
                return f"Parameter '{path}': {type_error}"

        return None

    def _validate_parameter_type(
        self, param: ToolParameter, value: Any, path: str
    ) -> Optional[str]:
        """
        Validate a single parameter value.

        Returns:
            None if valid, error message if invalid
        """
        if value is None:
            if param.required:
                return "is required but got null"
            return None

        if param.type == ToolParameterType.STRING:
            if not isinstance(value, str):
                return f"expected string, got {type(value).__name__}"

        elif param.type in (ToolParameterType.INTEGER, ToolParameterType.NUMBER):
            accepted = int if param.type == ToolParameterType.INTEGER else (int, float)
            if isinstance(value, bool) or not isinstance(value, accepted):
                return f"expected {param.type.value}, got {type(value).__name__}"

        elif param.type == ToolParameterType.BOOLEAN:
            if not isinstance(value, bool):
                return f"expected boolean, got {type(value).__name__}"

        elif param.type == ToolParameterType.ARRAY:
            if not isinstance(value, list):
                return f"expected array, got {type(value).__name__}"
            if param.items:
                for i, item in enumerate(value):
                    item_error = self._validate_parameter_type(param.items, item, f"{path}[{i}]")
                    if item_error:
                        return f"item {i}: {item_error}"

        elif param.type == ToolParameterType.OBJECT:
            if not isinstance(value, dict):
                return f"expected object, got {type(value).__name__}"
            if param.properties:
                return self._validate_members(param.properties, value, prefix=f"{path}.")

        if param.enum and value not in param.enum:
            return f"must be one of {param.enum}, got {value!r}"

        return None
