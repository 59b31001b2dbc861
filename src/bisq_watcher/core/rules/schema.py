"""Validated shapes of rule catalog entries and override directives."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..models import Rule, Severity

# Levels a rule or sink may configure; "unknown" only ever comes from a record.
ConfigLevel = Literal["emerg", "alert", "crit", "error", "warning", "notice", "info", "debug"]


class RuleSpec(BaseModel):
    """One entry of a rule catalog as written in configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    event_name: str = Field(alias="eventName", min_length=1)
    pattern: str
    message: str
    logger: str | None = None
    thread: str | None = None
    level: ConfigLevel | None = None
    send_to_telegram: bool = Field(default=True, alias="sendToTelegram")
    is_active: bool = Field(default=True, alias="isActive")

    def to_rule(self) -> Rule:
        return Rule(
            event_name=self.event_name,
            pattern=self.pattern,
            message=self.message,
            logger=self.logger,
            thread=self.thread,
            level=Severity(self.level) if self.level else None,
            send_to_telegram=self.send_to_telegram,
            is_active=self.is_active,
        )


class OverrideDirective(BaseModel):
    """Partial rule attached to a watcher or a sink scope.

    Only fields that were actually provided are applied; ``activation`` of
    ``inactive`` disables the rule and ignores every other field.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    event_name: str = Field(alias="eventName", min_length=1)
    activation: Literal["active", "inactive"] | None = None
    message: str | None = None
    level: ConfigLevel | None = None
    send_to_telegram: bool | None = Field(default=None, alias="sendToTelegram")
    logger: str | None = None
    thread: str | None = None

    @property
    def deactivates(self) -> bool:
        return self.activation == "inactive"
