import importlib
import inspect
import itertools
import pkgutil
import time
from copy import copy
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Type

import structlog
from gevent import Timeout

from dip20_player.exceptions import CallError, UnknownTaskTypeError

if TYPE_CHECKING:
    from dip20_player.runner import ScenarioRunner

log = structlog.get_logger(__name__)

NAME_TO_TASK: Dict[str, Type["Task"]] = {}

_task_ids = itertools.count(1)


class TaskState(Enum):
    INITIALIZED = " "
    RUNNING = "•"
    FINISHED = "✔"
    ERRORED = "✗"


class Task:
    """A single step of a scenario.

    Tasks run exactly once. A failing task is never retried: update calls are
    not idempotent, and later tasks rely on the ledger state earlier ones left.

    The optional ``timeout`` config key bounds the task's run time in seconds;
    expiry fails the task with a :exc:`CallError`.
    """

    _name: str

    def __init__(self, runner: "ScenarioRunner", config: Any, parent: "Task" = None) -> None:
        self.id = str(next(_task_ids))
        self._runner = runner
        self._config = {} if config is None else copy(config)
        self._parent = parent
        self._state = TaskState.INITIALIZED
        self.exception: Optional[BaseException] = None
        self.level: int = 0 if parent is None else parent.level + 1
        self._started: Optional[float] = None
        self._stopped: Optional[float] = None

    @property
    def timeout(self) -> Optional[float]:
        # Scalar configs (e.g. ``wait: 3``) carry no options
        if not isinstance(self._config, dict):
            return None
        return self._config.get("timeout") or None

    def __call__(self, *args, **kwargs):
        log.info("Starting task", task=repr(self), id=self.id)
        self.state = TaskState.RUNNING
        self._started = time.monotonic()
        try:
            result = self._run_bounded(*args, **kwargs)
        except BaseException as ex:
            log.error("Task errored", task=repr(self), error=str(ex))
            self.exception = ex
            self.state = TaskState.ERRORED
            raise
        finally:
            self._stopped = time.monotonic()

        log.info("Task successful", id=self.id, task=repr(self), runtime=self.runtime)
        self.state = TaskState.FINISHED
        return result

    def _run_bounded(self, *args, **kwargs):
        seconds = self.timeout
        if seconds is None:
            return self._run(*args, **kwargs)

        log.debug("Running task with timeout", timeout=seconds)
        timer = Timeout(seconds)
        timer.start()
        try:
            return self._run(*args, **kwargs)
        except Timeout as ex:
            if ex is not timer:
                raise
            raise CallError(f"{self.name} did not finish within {seconds}s") from None
        finally:
            timer.cancel()

    def _run(self, *args, **kwargs):
        raise NotImplementedError

    @property
    def name(self) -> str:
        """Human readable name of this step."""
        if isinstance(self._config, dict) and self._config.get("name"):
            return str(self._config["name"])
        return self.__class__.__name__.replace("Task", "")

    @property
    def runtime(self) -> float:
        if self._started is None:
            return 0.0
        return (self._stopped or time.monotonic()) - self._started

    @property
    def subtasks(self) -> List["Task"]:
        return []

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self._config}>"

    @property
    def state(self):
        return self._state

    @state.setter
    def state(self, new_state):
        self._state = new_state
        self._runner.task_state_changed(self, new_state)


def get_task_class_for_type(task_type: str) -> Type[Task]:
    try:
        return NAME_TO_TASK[task_type]
    except KeyError:
        raise UnknownTaskTypeError(f'Task type "{task_type}" is unknown.') from None


def collect_tasks(package):
    """Register every :class:`Task` subclass with a ``_name`` found in `package`'s modules."""
    for module_info in pkgutil.iter_modules(path=package.__path__):
        module = importlib.import_module(f"{package.__name__}.{module_info.name}")
        for _, member in inspect.getmembers(module, inspect.isclass):
            if issubclass(member, Task) and hasattr(member, "_name"):
                NAME_TO_TASK[member._name] = member
