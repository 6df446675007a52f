"""
Shared-block policy.

A block linked from more than one document cannot be edited silently: the
editor has to choose whether the change applies everywhere (modify), only to
a private copy for the current document (duplicate), or not at all (cancel).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from ..config import config
from ..errors import ConfigurationError
from ..models import BlockInstance


class SharedBlockDecision(str, Enum):
    """How an edit to a shared block proceeds."""

    MODIFY = "modify"
    DUPLICATE = "duplicate"
    CANCEL = "cancel"


DecisionCallback = Callable[[str, int], Awaitable[Union[SharedBlockDecision, str]]]


@dataclass
class EditOutcome:
    """
    Result of an edit request.
    """
    decision: SharedBlockDecision
    block: Optional[BlockInstance]
    resume_count: int

    @property
    def applied(self) -> bool:
        return self.decision != SharedBlockDecision.CANCEL


def duplicate_name(name: Optional[str]) -> str:
    return f"{name or 'Block'} (Copy)"


class SharedBlockPolicy:
    """
    Decides how edits to blocks shared between documents proceed.
    """

    def __init__(self, decide: Optional[DecisionCallback] = None, default_decision: Optional[str] = None):
        """
        Initialize the policy.

        Args:
            decide: Async callback ``(block_id, resume_count) -> decision``,
                usually a prompt shown to the editor
            default_decision: Decision used when no callback is given
                (defaults to config value)
        """
        self._decide = decide
        self.default_decision = SharedBlockDecision(
            default_decision or config.shared_block_default_decision
        )

    async def decide(self, block_id: str, resume_count: int) -> SharedBlockDecision:
        """
        Decide how to proceed with an edit.

        Blocks referenced by at most one document are always modified in
        place; otherwise the callback is awaited.

        Args:
            block_id: The block about to be edited
            resume_count: Number of documents linking the block

        Returns:
            The decision to apply
        """
        if resume_count <= 1:
            return SharedBlockDecision.MODIFY

        if self._decide is None:
            logging.info(
                f"Block {block_id} is shared by {resume_count} documents; "
                f"applying default decision '{self.default_decision.value}'"
            )
            return self.default_decision

        answer = await self._decide(block_id, resume_count)
        try:
            return SharedBlockDecision(answer)
        except ValueError as e:
            raise ConfigurationError(f"Shared block callback returned an unknown decision: {answer!r}") from e
