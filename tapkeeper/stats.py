"""Call timing for --dump-stats.

Wraps selected functions so their cumulative wall-clock time is recorded
in an explicit CallTimes registry, then prints a summary sorted by time.
"""

from __future__ import annotations

import functools
import re
import time
from collections.abc import Callable
from types import ModuleType
from typing import Any


class CallTimes:
    """Cumulative seconds spent per wrapped function name."""

    def __init__(self) -> None:
        self.times: dict[str, float] = {}
        self.originals: dict[tuple[str, str], tuple[ModuleType, Callable]] = {}

    def add(self, name: str, seconds: float) -> None:
        self.times[name] = self.times.get(name, 0.0) + seconds

    def restore(self) -> None:
        """Put back every function this registry wrapped."""
        for (_, name), (module, func) in self.originals.items():
            setattr(module, name, func)
        self.originals.clear()

    def report(self) -> str:
        """One "name: seconds sec" line per function, fastest first."""
        if not self.times:
            return ""
        width = max(max(len(name) for name in self.times) + 2, 15)
        lines = [
            f"{name + ':':<{width}} {seconds:0.4f} sec"
            for name, seconds in sorted(self.times.items(), key=lambda item: item[1])
        ]
        return "\n".join(lines)


def timed(registry: CallTimes, name: str | None = None) -> Callable[[Callable], Callable]:
    """Decorator recording each call's duration in `registry`."""

    def decorator(func: Callable) -> Callable:
        key = name or func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                registry.add(key, time.perf_counter() - start)

        return wrapper

    return decorator


def inject_dump_stats(registry: CallTimes, module: ModuleType, pattern: str) -> list[str]:
    """Wrap every function in `module` whose name matches `pattern`.

    Module-level calls look names up at call time, so calls made inside the
    module are timed too. Functions are wrapped at most once per registry;
    `registry.restore()` puts the originals back.

    Returns:
        Names of the newly wrapped functions.
    """
    regex = re.compile(pattern)
    injected: list[str] = []

    for name, value in sorted(vars(module).items()):
        key = (module.__name__, name)
        if not callable(value) or isinstance(value, type) or key in registry.originals:
            continue
        if getattr(value, "__module__", None) != module.__name__ or not regex.search(name):
            continue
        setattr(module, name, timed(registry, name)(value))
        registry.originals[key] = (module, value)
        injected.append(name)

    return injected
