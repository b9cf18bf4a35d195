"""Named, ordered hook chains.

An action is a callable ``action(facts, next)``. It may mutate ``facts`` and
then either call ``next()`` (and await or return the result) to continue with
the following action, or return without calling it, which halts the rest of
the chain. Actions may be plain functions or coroutines.

Two registries share the same chain semantics:

- FlatRuleRegistry: exact string routes, e.g. ``"state_tracking.post_data_validation"``
- TreeRuleRegistry: slash paths; running ``/mod/op`` runs the root actions,
  then those at ``/mod``, then those at ``/mod/op``
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import RuleChainError, RuleRouteError

logger = logging.getLogger(__name__)

Next = Callable[[], Awaitable[Any]]
Action = Callable[[Any, Next], Any]


def validate_action(action: Action | list[Action]) -> list[Action]:
    """Return the action(s) as a list, rejecting anything not callable."""
    actions = list(action) if isinstance(action, (list, tuple)) else [action]
    for item in actions:
        if not callable(item):
            raise TypeError(f"Invalid action: {item!r}")
    return actions


def compose_actions(
    actions: list[Action], route: str | None = None
) -> Callable[[Any], Awaitable[Any]]:
    """Compose actions into one chain ending in a no-op.

    Calling ``next()`` twice from the same action raises RuleChainError at the
    second call. The awaitable returned by ``next()`` must be awaited or
    returned by the action; an action that calls ``next()`` and drops the
    result also raises RuleChainError. Exceptions raised by an action
    propagate unchanged.
    """
    actions = list(actions)

    async def chain(facts: Any) -> Any:
        dispatched = -1
        pending: dict[int, Awaitable[Any]] = {}
        started: set[int] = set()

        async def run_action(i: int) -> Any:
            started.add(i)
            if i == len(actions):
                return None
            result = actions[i](facts, make_next(i + 1))
            if inspect.isawaitable(result):
                result = await result
            following = pending.pop(i + 1, None)
            if following is not None and i + 1 not in started:
                following.close()
                raise RuleChainError(
                    "next() was called but its result was never awaited",
                    route=route,
                    position=i,
                )
            return result

        def make_next(i: int) -> Next:
            def next_() -> Awaitable[Any]:
                nonlocal dispatched
                if i <= dispatched:
                    raise RuleChainError(
                        "next() called multiple times", route=route, position=i - 1
                    )
                dispatched = i
                pending[i] = run_action(i)
                return pending[i]

            return next_

        return await make_next(0)()

    return chain


class FlatRuleRegistry:
    """Rules keyed by exact route strings."""

    def __init__(self) -> None:
        self._rules: dict[str, list[Action]] = {}

    def add_rule(self, route: str, action: Action | list[Action]) -> None:
        """Append action(s) to the route; repeated registrations accumulate."""
        actions = validate_action(action)
        self._rules.setdefault(route, []).extend(actions)

    def has_rule(self, route: str) -> bool:
        return route in self._rules

    def routes(self) -> list[str]:
        return list(self._rules)

    async def run(self, route: str, facts: Any) -> Any:
        if route not in self._rules:
            raise RuleRouteError(f'Rule route "{route}" is not registered.', route=route)
        logger.debug("Running %d action(s) at %s", len(self._rules[route]), route)
        return await compose_actions(self._rules[route], route)(facts)


class _RuleNode:
    __slots__ = ("key", "actions", "children")

    def __init__(self, key: str, actions: list[Action] | None = None):
        self.key = key
        self.actions: list[Action] = list(actions or [])
        self.children: dict[str, "_RuleNode"] = {}


class TreeRuleRegistry:
    """Rules keyed by slash-delimited paths, inherited from root to leaf."""

    def __init__(self, root_actions: Action | list[Action] | None = None):
        actions = validate_action(root_actions) if root_actions is not None else []
        self._root = _RuleNode("", actions)

    @staticmethod
    def _path_to_keys(path: str) -> list[str]:
        if not path.startswith("/"):
            path = "/" + path
        if path == "/":
            return []
        return path.rstrip("/").split("/")[1:]

    def add_rule(self, path: str, action: Action | list[Action]) -> None:
        actions = validate_action(action)
        node = self._root
        for key in self._path_to_keys(path):
            node = node.children.setdefault(key, _RuleNode(key))
        node.actions.extend(actions)

    def has_path(self, path: str) -> bool:
        node = self._root
        for key in self._path_to_keys(path):
            node = node.children.get(key)
            if node is None:
                return False
        return True

    def _collect(self, path: str) -> list[Action]:
        actions = list(self._root.actions)
        node = self._root
        for key in self._path_to_keys(path):
            node = node.children.get(key)
            if node is None:
                raise RuleRouteError(f'Node with path "{path}" not found.', route=path)
            actions.extend(node.actions)
        return actions

    async def run(self, path: str, facts: Any) -> Any:
        actions = self._collect(path)
        logger.debug("Running %d action(s) along %s", len(actions), path)
        return await compose_actions(actions, path)(facts)
