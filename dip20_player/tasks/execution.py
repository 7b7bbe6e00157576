from typing import TYPE_CHECKING, Any, List

import click
import gevent
import structlog

from dip20_player.exceptions.config import ScenarioConfigurationError
from dip20_player.tasks.base import Task, get_task_class_for_type

if TYPE_CHECKING:
    from dip20_player.runner import ScenarioRunner

log = structlog.get_logger(__name__)


def build_task(runner: "ScenarioRunner", task_definition: Any, parent: Task = None) -> Task:
    """Instantiate a task from its ``{task_type: config}`` definition."""
    if not isinstance(task_definition, dict) or len(task_definition) != 1:
        raise ScenarioConfigurationError(
            f"A task must be a mapping with exactly one task type, not {task_definition!r}"
        )
    ((task_type, task_config),) = task_definition.items()
    task_class = get_task_class_for_type(task_type)
    return task_class(runner=runner, config=task_config, parent=parent)


class SerialTask(Task):
    """Run the configured ``tasks`` one after the other, stopping at the first failure."""

    _name = "serial"

    def __init__(self, runner: "ScenarioRunner", config: Any, parent: Task = None) -> None:
        super().__init__(runner, config, parent)

        self._tasks: List[Task] = []
        for _ in range(self._config.get("repeat", 1)):
            for task in self._config.get("tasks", []):
                self._tasks.append(build_task(self._runner, task, parent=self))

    def _run(self, *args, **kwargs):  # pylint: disable=unused-argument
        return [task() for task in self._tasks]

    @property
    def subtasks(self) -> List[Task]:
        return self._tasks

    @property
    def name(self):
        return self._config.get("name") or "Serial"


class WaitTask(Task):
    _name = "wait"

    def _run(self, *args, **kwargs):  # pylint: disable=unused-argument
        seconds = self._config if not isinstance(self._config, dict) else self._config["seconds"]
        gevent.sleep(seconds)


class WaitForInputTask(Task):
    """
    WARNING: This is a debugging feature. It blocks the run until the operator
    types 'continue'.
    """

    _name = "wait_input"

    def _run(self, *args, **kwargs):  # pylint: disable=unused-argument
        typed = ""
        while typed != "continue":
            typed = click.prompt("Waiting: Please type 'continue' to proceed!").strip()
