"""Runtime settings consumed by compose sessions.

What:
  Turn the validated :class:`~mailcompose.config.schema.ComposeConfig` into the
  plain runtime objects the engine works with: a frozen policy token set,
  :class:`~mailcompose.core.contexts.Context` records and folder sets.

Why:
  Sessions must not reach into configuration files or module globals. A
  settings value built once at load time, with the legacy reply policy already
  folded in, is passed to every session explicitly.

How:
  :meth:`ComposeSettings.from_config` merges the legacy policy via
  :func:`~mailcompose.config.legacy.merge_policy` and converts each context.
  Programmatic callers may construct :class:`ComposeSettings` directly, e.g.
  with a callable ``sent_behavior``.

Interfaces:
  :class:`ComposeSettings`, :func:`folders_from_config`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from ..core.contexts import Context, ContextPolicy, ContextRegistry
from ..core.disposition import BehaviorSource, FolderSet, SentBehavior
from ..core.policy import DEFAULT_POLICY, CryptoPolicy
from ..utils.logging import JsonLogger
from .legacy import merge_policy
from .schema import ComposeConfig, FolderConfig, RuntimeConfig


def folders_from_config(config: FolderConfig) -> FolderSet:
    return FolderSet(drafts=config.drafts, sent=config.sent, trash=config.trash)


@dataclass
class ComposeSettings:
    """Engine settings shared by every session of a process."""

    policy: FrozenSet[CryptoPolicy] = DEFAULT_POLICY
    crypto_method: str = "pgpmime"
    sent_behavior: BehaviorSource = SentBehavior.SENT
    context_policy: ContextPolicy = ContextPolicy.ASK_IF_NONE
    default_folders: FolderSet = field(default_factory=FolderSet)
    contexts: List[Context] = field(default_factory=list)

    @classmethod
    def from_config(
        cls,
        config: ComposeConfig | RuntimeConfig,
        *,
        logger: Optional[JsonLogger] = None,
    ) -> "ComposeSettings":
        """Build settings from a validated configuration model."""

        compose = config.compose if isinstance(config, RuntimeConfig) else config
        policy = merge_policy(
            compose.crypto.policy,
            compose.crypto.legacy_reply_policy,
            logger=logger,
        )
        contexts = [
            Context(
                name=item.name,
                identity=item.identity,
                folders=folders_from_config(item.folders),
                match=item.match,
            )
            for item in compose.contexts
        ]
        return cls(
            policy=policy,
            crypto_method=compose.crypto.method,
            sent_behavior=compose.sent_behavior,
            context_policy=compose.context_policy,
            default_folders=folders_from_config(compose.default_folders),
            contexts=contexts,
        )

    def registry(self, current: Optional[Context] = None) -> ContextRegistry:
        return ContextRegistry(self.contexts, current=current)

    def folders_for(self, context: Optional[Context]) -> FolderSet:
        return context.folders if context is not None else self.default_folders
