"""Per-run context handed to every command."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from replicator.config import ReplicatorConfig
from replicator.core.credentials import CredentialScope, ambient_scope
from replicator.core.prompts import Prompter


@dataclass
class RunContext:
    config: ReplicatorConfig
    prompter: Prompter
    scope_factory: Callable[[str | None], CredentialScope] = field(default=ambient_scope)

    def destination(self, region: str | None = None) -> CredentialScope:
        return self.scope_factory(region)
