"""Map a loop mode to a deterministic argv and environment overlay."""

from dataclasses import dataclass, field

from ralph_dashboard.core.config.models import LoopCommandConfig

from .run_state import LoopMode


@dataclass(frozen=True)
class LoopCommand:
    """Resolved command for one run.

    Attributes:
        argv: Full argument vector (base command plus mode arguments).
        env: Variables overlaid on the inherited environment.

    """

    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)


def build_loop_command(
    config: LoopCommandConfig,
    mode: LoopMode,
    iteration_limit: int = 0,
    scope_label: str | None = None,
) -> LoopCommand:
    """Build the loop invocation for a mode.

    The scope label is never passed positionally; it travels in the
    configured environment variable so arbitrary text is not interpreted
    by the script's argument handling.

    Args:
        config: Loop command configuration.
        mode: Operating mode.
        iteration_limit: Maximum iterations, 0 for unbounded.
        scope_label: Free-text scope (plan-work only).

    Returns:
        LoopCommand with argv and env overlay.

    Raises:
        ValueError: If iteration_limit is negative.

    """
    if iteration_limit < 0:
        raise ValueError(f"iteration_limit must be >= 0, got {iteration_limit}")

    args: list[str] = []
    if mode in (LoopMode.PLAN, LoopMode.PLAN_SLC):
        args.append(mode.value)
        if iteration_limit:
            args.append(str(iteration_limit))
    elif mode is LoopMode.PLAN_WORK:
        args.append(mode.value)
    elif mode is LoopMode.BUILD:
        if iteration_limit:
            args.append(str(iteration_limit))

    env = {config.scope_env_var: scope_label or ""}
    return LoopCommand(argv=[*config.command, *args], env=env)
