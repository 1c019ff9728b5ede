"""Hook execution runtime with per-plugin fault isolation."""

from __future__ import annotations

import inspect
from collections.abc import Iterable
from typing import Any

import pluggy
from loguru import logger

from baton.context import RunContext
from baton.hookspecs import BATON_HOOK_NAMESPACE, BatonHookSpecs


class HookRuntime:
    """Safe wrapper around pluggy hook execution."""

    def __init__(self, plugin_manager: pluggy.PluginManager) -> None:
        self._plugin_manager = plugin_manager

    @classmethod
    def from_plugins(cls, plugins: Iterable[object] = ()) -> HookRuntime:
        plugin_manager = pluggy.PluginManager(BATON_HOOK_NAMESPACE)
        plugin_manager.add_hookspecs(BatonHookSpecs)
        for plugin in plugins:
            plugin_manager.register(plugin)
        return cls(plugin_manager)

    def register(self, plugin: object, name: str | None = None) -> None:
        self._plugin_manager.register(plugin, name=name)

    async def notify(self, hook_name: str, **kwargs: Any) -> None:
        """Run every implementation; a failing observer is reported and skipped."""

        for impl in self._iter_hookimpls(hook_name):
            call_kwargs = self._kwargs_for_impl(impl, kwargs)
            try:
                value = impl.function(**call_kwargs)
                if inspect.isawaitable(value):
                    await value
            except Exception as error:
                await self.notify_error(
                    stage=f"{hook_name}:{impl.plugin_name or '<unknown>'}",
                    error=error,
                    context=kwargs.get("context"),
                )

    async def notify_error(self, *, stage: str, error: Exception, context: RunContext | None) -> None:
        """Call on_run_error hooks, logging observer failures."""

        for impl in self._iter_hookimpls("on_run_error"):
            call_kwargs = self._kwargs_for_impl(impl, {"stage": stage, "error": error, "context": context})
            try:
                value = impl.function(**call_kwargs)
                if inspect.isawaitable(value):
                    await value
            except Exception:
                logger.opt(exception=True).warning(
                    "hook.on_run_error_failed stage={} plugin={}",
                    stage,
                    impl.plugin_name or "<unknown>",
                )

    def hook_report(self) -> dict[str, list[str]]:
        """Build a hook->plugins mapping for diagnostics."""

        report: dict[str, list[str]] = {}
        for hook_name, hook_caller in sorted(self._plugin_manager.hook.__dict__.items()):
            if hook_name.startswith("_") or not hasattr(hook_caller, "get_hookimpls"):
                continue
            plugin_names = [impl.plugin_name for impl in hook_caller.get_hookimpls()]
            if plugin_names:
                report[hook_name] = plugin_names
        return report

    def _iter_hookimpls(self, hook_name: str) -> list[Any]:
        hook = getattr(self._plugin_manager.hook, hook_name, None)
        if hook is None or not hasattr(hook, "get_hookimpls"):
            return []
        return list(reversed(hook.get_hookimpls()))

    @staticmethod
    def _kwargs_for_impl(impl: Any, kwargs: dict[str, Any]) -> dict[str, Any]:
        return {name: kwargs[name] for name in impl.argnames if name in kwargs}
