"""
Action Engine

The execution engine loaded actions register themselves with. A route is
an ordered list of processors applied to a message frame whose body is
the invocation input and whose headers are the invocation environment.

Core Components:
- Frame / MessageFrame / ErrorFrame: immutable data containers
- Processor: single-step transformers
- Pipeline / RouteDefinition: route execution and its fluent builder
- ExecutionContext: invocation-scoped state and bean registry
- ActionFunction: engine instance hosting an action's routes
"""

from .context import ExecutionContext, ExecutionResult
from .frames import ErrorFrame, Frame, MessageFrame
from .function import ActionFunction
from .pipeline import INPUT_ENDPOINT_URI, Pipeline, RouteDefinition
from .processor import FunctionProcessor, Processor, SetBodyProcessor, SetHeaderProcessor

__all__ = [
    "INPUT_ENDPOINT_URI",
    "ActionFunction",
    "ErrorFrame",
    "ExecutionContext",
    "ExecutionResult",
    "Frame",
    "FunctionProcessor",
    "MessageFrame",
    "Pipeline",
    "Processor",
    "RouteDefinition",
    "SetBodyProcessor",
    "SetHeaderProcessor",
]
