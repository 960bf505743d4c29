"""Identity/account context selection.

What:
  Model the configured identities (contexts) and choose which one applies to a
  draft, by policy, from the contexts' match predicates run over the original
  message.

Why:
  Exactly one context is current at any time and drives the ``From`` address
  and the drafts/sent/trash folders. Selection has to work outside a session as
  well, e.g. to pick the initial account for a brand new message.

How:
  :func:`determine_context` is pure: it consults predicates, the policy and an
  optional ``ask`` callback and returns a :class:`ContextChoice`. Prompting is
  delegated to the caller-provided callback; a ``None`` answer is an operator
  abort reported through :attr:`ContextChoice.aborted`. :class:`ContextRegistry`
  carries the configured contexts and the current one explicitly.

Interfaces:
  :class:`ContextPolicy`, :class:`Context`, :class:`ContextChoice`,
  :class:`ContextRegistry`, :func:`determine_context`.

Invariants & Safety:
  - The first matching context wins without prompting, except under
    ``ALWAYS_ASK``.
  - ``NONE`` and ``ASK_IF_NONE`` (with an active context) leave the current
    context unchanged.
  - A policy that needs a prompt with no ``ask`` callback raises
    :class:`ConfigurationError`; the engine never guesses in its place.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from ..errors import ConfigurationError
from .disposition import FolderSet
from .matching import clauses_match
from .message import Message


class ContextPolicy(str, Enum):
    ALWAYS_ASK = "always-ask"
    ASK = "ask"
    ASK_IF_NONE = "ask-if-none"
    PICK_FIRST = "pick-first"
    NONE = "none"


MatchPredicate = Callable[[Optional[Message]], bool]
AskCallback = Callable[[Sequence["Context"]], Optional["Context"]]


@dataclass
class Context:
    """An identity with its folder mapping.

    Attributes:
      name: Unique label shown when prompting.
      identity: ``From`` address used for drafts composed in this context.
      folders: Drafts, sent and trash folders of the identity.
      match: Callable predicate or declarative clause set evaluated over the
        original message (``None`` for new drafts). ``None`` never matches.
    """

    name: str
    identity: str
    folders: FolderSet = field(default_factory=FolderSet)
    match: Any = None

    def matches(self, original: Optional[Message]) -> bool:
        if self.match is None:
            return False
        if callable(self.match):
            return bool(self.match(original))
        return clauses_match(self.match, original)


@dataclass(frozen=True)
class ContextChoice:
    """Result of :func:`determine_context`."""

    context: Optional[Context]
    prompted: bool = False
    aborted: bool = False


def _prompt(contexts: Sequence[Context], ask: Optional[AskCallback], policy: ContextPolicy) -> ContextChoice:
    if ask is None:
        raise ConfigurationError(
            f"context policy {policy.value!r} requires a prompt but no prompt is available"
        )
    chosen = ask(contexts)
    if chosen is None:
        return ContextChoice(context=None, prompted=True, aborted=True)
    return ContextChoice(context=chosen, prompted=True)


def determine_context(
    contexts: Sequence[Context],
    policy: ContextPolicy,
    original: Optional[Message] = None,
    current: Optional[Context] = None,
    ask: Optional[AskCallback] = None,
) -> ContextChoice:
    """Select the context applying to a draft.

    What:
      Apply ``policy`` against the predicates of ``contexts``.

    How:
      ``ALWAYS_ASK`` prompts unconditionally. Otherwise the first context whose
      predicate matches ``original`` is chosen. Without a match ``PICK_FIRST``
      takes the first configured context, ``ASK`` prompts, ``ASK_IF_NONE``
      keeps ``current`` when set and prompts otherwise, and ``NONE`` keeps
      ``current``.

    Args:
      contexts: Configured contexts in configuration order.
      policy: Selection policy.
      original: Message being answered, if any.
      current: Context active before the call.
      ask: Prompt callback; returns the chosen context or ``None`` to abort.

    Returns:
      :class:`ContextChoice` describing the selection.

    Raises:
      ConfigurationError: When a prompt is required and ``ask`` is ``None``.
    """

    if not contexts:
        return ContextChoice(context=current)
    if policy is ContextPolicy.ALWAYS_ASK:
        return _prompt(contexts, ask, policy)
    for context in contexts:
        if context.matches(original):
            return ContextChoice(context=context)
    if policy is ContextPolicy.PICK_FIRST:
        return ContextChoice(context=contexts[0])
    if policy is ContextPolicy.ASK:
        return _prompt(contexts, ask, policy)
    if policy is ContextPolicy.ASK_IF_NONE:
        if current is not None:
            return ContextChoice(context=current)
        return _prompt(contexts, ask, policy)
    return ContextChoice(context=current)


class ContextRegistry:
    """Configured contexts plus the one currently active.

    The registry is passed explicitly to whoever needs it; it is never a module
    global.
    """

    def __init__(self, contexts: Sequence[Context] = (), current: Optional[Context] = None) -> None:
        names = [context.name for context in contexts]
        if len(names) != len(set(names)):
            raise ConfigurationError("context names must be unique")
        self.contexts: List[Context] = list(contexts)
        self.current = current

    def get(self, name: str) -> Context:
        for context in self.contexts:
            if context.name == name:
                return context
        raise ConfigurationError(f"unknown context {name!r}")

    def select(
        self,
        policy: ContextPolicy,
        original: Optional[Message] = None,
        ask: Optional[AskCallback] = None,
        *,
        commit: bool = True,
    ) -> ContextChoice:
        """Run :func:`determine_context` and, with ``commit``, make the result current.

        Callers that still have to open the draft pass ``commit=False`` and
        assign :attr:`current` once the draft exists.
        """

        choice = determine_context(self.contexts, policy, original, self.current, ask)
        if commit and not choice.aborted and choice.context is not None:
            self.current = choice.context
        return choice
