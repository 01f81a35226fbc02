"""Built-in sequential thinking tool.

Always present in the catalog, independent of any tool server. Models call it
to lay out a problem step by step; steps are kept in a process-wide log that
callers can read back and clear.
"""

import threading
import time

from .schema import ToolDef, callable_to_tool_def


_thinking_log: list[dict] = []
_log_lock = threading.Lock()


def get_thinking_log() -> list[dict]:
    """Return a copy of the recorded thinking steps."""
    with _log_lock:
        return list(_thinking_log)


def clear_thinking_log() -> None:
    with _log_lock:
        _thinking_log.clear()


def sequential_thinking(
    thought: str,
    step_number: int,
    total_steps: int,
    next_step_needed: bool,
) -> str:
    """Use sequential thinking for complex step-by-step problem solving.

    Args:
        thought: Current thinking step
        step_number: Current step number
        total_steps: Estimated total steps
        next_step_needed: Whether another step is needed
    """
    if step_number < 1 or total_steps < 1:
        return "step_number and total_steps must be positive integers"

    # The estimate grows when the model runs past it
    total_steps = max(total_steps, step_number)

    with _log_lock:
        _thinking_log.append({
            "thought": thought,
            "step_number": step_number,
            "total_steps": total_steps,
            "next_step_needed": next_step_needed,
            "timestamp": time.time(),
        })

    if next_step_needed:
        return f"Step {step_number}/{total_steps} recorded. Continue with the next step."
    return f"Step {step_number}/{total_steps} recorded. Thinking complete."


SEQUENTIAL_THINKING: ToolDef = callable_to_tool_def(
    "sequential_thinking", sequential_thinking, builtin=True,
)


def default_builtin_tools() -> tuple[ToolDef, ...]:
    return (SEQUENTIAL_THINKING,)
