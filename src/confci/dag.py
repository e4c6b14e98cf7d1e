# dag.py
from __future__ import annotations

import heapq
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from .errors import DuplicateTaskError, TaskFailedError, UnknownDependencyError
from .model import PipelineRun, Task

EnterHook = Callable[[str], None]
ExitHook = Callable[[str, Optional[BaseException]], None]


def task(
    name: str,
    action: Callable[[PipelineRun], None],
    *,
    needs: Sequence[str] = (),
    synopsis: str = "",
) -> Task:
    """Convenience: task("lint", run_lint, needs=["load"], synopsis="...")"""
    if not name:
        raise ValueError("task() needs a non-empty name")
    return Task(name=name, action=action, needs=tuple(needs), synopsis=synopsis)


def _noop_enter(name: str) -> None:
    pass


def _noop_exit(name: str, error: Optional[BaseException]) -> None:
    pass


class TaskGraph:
    """
    Static set of named tasks with dependency edges.

    Tasks must be registered after everything they need, so the graph can
    never contain a cycle. Execution is strictly sequential on the calling
    thread.
    """

    def __init__(
        self,
        on_enter: EnterHook | None = None,
        on_exit: ExitHook | None = None,
    ):
        self._tasks: Dict[str, Task] = {}
        self._index: Dict[str, int] = {}  # registration order
        self.on_enter: EnterHook = on_enter or _noop_enter
        self.on_exit: ExitHook = on_exit or _noop_exit

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks.values())

    def register(self, t: Task) -> Task:
        if t.name in self._tasks:
            raise DuplicateTaskError(t.name)
        for dep in t.needs:
            if dep not in self._tasks:
                raise UnknownDependencyError(t.name, dep, list(self._tasks))
        self._index[t.name] = len(self._index)
        self._tasks[t.name] = t
        return t

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _closure(self, entries: Iterable[str]) -> Set[str]:
        seen: Set[str] = set()
        stack = list(entries)
        while stack:
            name = stack.pop()
            if name in seen:
                continue
            if name not in self._tasks:
                raise UnknownDependencyError("", name, list(self._tasks))
            seen.add(name)
            stack.extend(self._tasks[name].needs)
        return seen

    def order(self, entries: Iterable[str] | None = None) -> List[str]:
        """
        Topological order of the dependency closure of `entries`.

        Among tasks that are ready at the same time, the one registered first
        comes first, so a linear registration yields exactly that order.
        No entries means every registered task.
        """
        names = self._closure(entries) if entries is not None else set(self._tasks)

        indeg: Dict[str, int] = {n: 0 for n in names}
        dependents: Dict[str, List[str]] = {n: [] for n in names}
        for n in names:
            for dep in set(self._tasks[n].needs):
                indeg[n] += 1
                dependents[dep].append(n)

        ready = [(self._index[n], n) for n, d in indeg.items() if d == 0]
        heapq.heapify(ready)

        ordered: List[str] = []
        while ready:
            _, name = heapq.heappop(ready)
            ordered.append(name)
            for child in dependents[name]:
                indeg[child] -= 1
                if indeg[child] == 0:
                    heapq.heappush(ready, (self._index[child], child))

        # register() rejects forward references, so this only trips if the
        # internal maps were tampered with.
        if len(ordered) != len(names):
            stuck = sorted(n for n, d in indeg.items() if d > 0)
            raise RuntimeError(f"Task graph has a cycle. Stuck tasks: {stuck}")

        return ordered

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, run: PipelineRun, entries: Iterable[str] | None = None) -> List[str]:
        """
        Execute the closure of `entries` one task at a time.

        On the first failing action the remaining tasks are skipped and a
        TaskFailedError is raised. The exit hook still runs for the failing
        task. Returns the names of the tasks that ran, in order.
        """
        executed: List[str] = []
        for name in self.order(entries):
            t = self._tasks[name]
            self.on_enter(name)
            try:
                t.action(run)
            except Exception as e:
                self.on_exit(name, e)
                raise TaskFailedError(name, e) from e
            self.on_exit(name, None)
            executed.append(name)
        return executed
