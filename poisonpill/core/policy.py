"""Retry policy for RetryingDispatcher."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from poisonpill.core.counter import CounterStrategy

DEFAULT_MAX_RETRIES = 5


class RetryPolicy(BaseModel):
    """Immutable routing configuration for one dispatcher.

    Attributes:
        max_retries: How many times a failing message is sent back for
            redelivery before it is dead-lettered. 0 dead-letters on the
            first failure.
        retry_destination: Destination for redelivery. None uses the retry
            sender's default destination.
        error_destination: Destination for dead letters. None uses the error
            sender's default destination.
        counter: Where the retry count is stored.
    """

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_destination: str | None = None
    error_destination: str | None = None
    counter: CounterStrategy = CounterStrategy.PROPERTY

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("retry_destination", "error_destination")
    @classmethod
    def validate_destination(cls, v: str | None) -> str | None:
        """Normalize blank destinations to None."""
        if v is None:
            return None
        v = v.strip()
        return v or None
