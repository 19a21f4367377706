from __future__ import annotations

from .steps import StepChain, WorkflowStep


def find_step(
    chain: StepChain, step_type: type[WorkflowStep], *identity: str | None
) -> WorkflowStep | None:
    """Return the first step of `step_type` whose identity matches, or None.

    Identity is (name, version) for activities and child workflows and
    (timer_id,) for timers.
    """

    for step in chain:
        if isinstance(step, step_type) and step.identity == identity:
            return step
    return None


def find_next_step(
    chain: StepChain, step_type: type[WorkflowStep], *identity: str | None
) -> WorkflowStep | None:
    """Policy: (finished step) -> step that follows it in the chain.

    Returns None when the step is not in the chain or is the last one, which
    the caller treats as "no more steps".
    """

    for position, step in enumerate(chain):
        if isinstance(step, step_type) and step.identity == identity:
            if position + 1 < len(chain):
                return chain[position + 1]
            return None
    return None
