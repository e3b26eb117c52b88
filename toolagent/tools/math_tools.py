"""内置算术工具：add / multiply / exponentiate。"""

from typing import List

from toolagent.tools.definitions import Tool
from toolagent.tools.registry import ToolRegistry
from toolagent.tools.schema import tool


@tool
def add(first_int: int, second_int: int) -> int:
    """Add two integers.

    Args:
        first_int: The first addend.
        second_int: The second addend.
    """
    return first_int + second_int


@tool
def multiply(first_int: int, second_int: int) -> int:
    """Multiply two integers together.

    Args:
        first_int: The first factor.
        second_int: The second factor.
    """
    return first_int * second_int


@tool
def exponentiate(base: int, exponent: int) -> int:
    """Raise a base to an integer exponent.

    Args:
        base: The number to raise.
        exponent: The power to raise the base to.
    """
    return base**exponent


def default_tools() -> List[Tool]:
    return [add, multiply, exponentiate]


def default_registry() -> ToolRegistry:
    return ToolRegistry(default_tools())
