"""Runner configuration."""

from pydantic import Field

from scope_runner.models.base import Model


class RunnerConfig(Model):
    """Options recognised by a test run.

    Keys may be given either by field name or by their camelCase alias,
    e.g. ``{"timeoutWarningDelay": 5}``.
    """

    show_timeout_warning: bool = Field(
        default=True,
        alias="showTimeoutWarning",
        description="Warn when a test runs longer than timeout_warning_delay",
    )
    timeout_warning_delay: float = Field(
        default=15,
        gt=0,
        alias="timeoutWarningDelay",
        description="Seconds before a slow-test warning is emitted",
    )
    concurrent: bool = Field(
        default=False,
        description="Dispatch all runnable tests at once instead of one at a time",
    )
