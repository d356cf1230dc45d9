"""
Tool approval policies.

A policy decides, for each ``ToolApprovalRequested`` event, whether the session
approves the call. Sessions take the policy as a constructor argument, so a
stricter rule is a drop-in replacement.
"""

from typing import Callable, Iterable

from realtime_chat.models.upstream_events import ToolApprovalRequested

ApprovalPolicy = Callable[[ToolApprovalRequested], bool]


def auto_approve_all(request: ToolApprovalRequested) -> bool:
    """Approve every tool call without human review."""
    return True


def allow_list(tool_names: Iterable[str]) -> ApprovalPolicy:
    """
    Build a policy that approves only the named tools.

    Args:
        tool_names: Names of the tools to approve

    Returns:
        ApprovalPolicy: A policy rejecting every other tool
    """
    allowed = frozenset(tool_names)

    def policy(request: ToolApprovalRequested) -> bool:
        return request.tool_name in allowed

    return policy
