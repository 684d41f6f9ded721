"""
Pipeline error types.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for translation pipeline errors."""


class NotFoundError(PipelineError):
    """A referenced translation, model, language or output does not exist."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class InvalidTransitionError(PipelineError):
    """A status change that the output state machine does not allow."""

    def __init__(self, track: str, current: str, target: str, reason: Optional[str] = None):
        message = f"Illegal {track} transition {current} -> {target}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.track = track
        self.current = current
        self.target = target


class RecordSupersededError(PipelineError):
    """The output record was replaced by a newer run; late writes are dropped."""

    def __init__(self, output_id: str):
        super().__init__(f"Output {output_id} was superseded by a newer run")
        self.output_id = output_id


class EmptyGenerationError(PipelineError):
    """The model answered successfully but returned no text."""


class OutputNotEditableError(PipelineError):
    """Manual edits are only accepted once translation and proofreading have finished."""

    def __init__(self, output_id: str):
        super().__init__(f"Output {output_id} has no finished translation to edit")
        self.output_id = output_id
