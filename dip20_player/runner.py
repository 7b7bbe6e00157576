from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
)

import click
import structlog

from dip20_player.cap import CapStrategy, default_strategies, resolve_cap_id
from dip20_player.client import ServiceClient
from dip20_player.constants import DEFAULT_IDENTITY_ALIASES
from dip20_player.definition import ScenarioDefinition
from dip20_player.deploy import Deployer
from dip20_player.dfx import Dfx
from dip20_player.exceptions import ScenarioError
from dip20_player.exceptions.config import ScenarioConfigurationError
from dip20_player.identity import Identity, IdentityProvisioner
from dip20_player.utils.configuration.settings import EnvironmentConfig

if TYPE_CHECKING:
    from dip20_player.tasks.base import Task, TaskState

log = structlog.get_logger(__name__)


def walk_tasks(tasks: Iterable["Task"]) -> Iterator["Task"]:
    """Yield `tasks` and, depth first, the tasks nested inside them."""
    for task in tasks:
        yield task
        yield from walk_tasks(task.subtasks)


class RunState(Enum):
    NOT_STARTED = "not started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    RunState.NOT_STARTED: {RunState.RUNNING, RunState.COMPLETED},
    RunState.RUNNING: {RunState.RUNNING, RunState.COMPLETED, RunState.FAILED},
    RunState.COMPLETED: set(),
    RunState.FAILED: set(),
}


@dataclass(frozen=True)
class RunStatus:
    state: RunState
    step_index: Optional[int] = None
    error: Optional[BaseException] = None

    @property
    def done(self) -> bool:
        return self.state in (RunState.COMPLETED, RunState.FAILED)

    @property
    def success(self) -> bool:
        return self.state is RunState.COMPLETED

    def __str__(self):
        if self.state is RunState.RUNNING:
            return f"running step {self.step_index}"
        if self.state is RunState.FAILED:
            return f"failed at step {self.step_index}: {self.error}"
        return self.state.value


class ScenarioRunner:
    """Execute the steps of a scenario strictly in order.

    The first failing step ends the run: later steps assume the ledger
    mutations of earlier ones happened. The run's progress is tracked in
    :attr:`status`, which only ever moves forward::

        NOT_STARTED -> RUNNING(0) -> ... -> RUNNING(n) -> COMPLETED
                                            RUNNING(i) -> FAILED(i, error)
    """

    def __init__(
        self,
        definition: ScenarioDefinition,
        environment: EnvironmentConfig,
        identities: IdentityProvisioner,
        dfx: Dfx,
        deployer: Optional[Deployer] = None,
        client: Optional[ServiceClient] = None,
        cap_strategies: Optional[Sequence[CapStrategy]] = None,
        echo: Callable = click.secho,
    ) -> None:
        from dip20_player.tasks.execution import build_task

        self.definition = definition
        self.environment = environment
        self.identities = identities
        self.dfx = dfx
        self.deployer = deployer or Deployer(
            dfx, definition.settings.canister, environment.project_dir
        )
        self._client = client
        self._cap_strategies = cap_strategies
        self._cap_id: Optional[str] = None
        self.echo = echo

        # Storage for values tasks hand to later tasks (``store_as``)
        self.task_storage: Dict[str, Any] = {}

        self.status = RunStatus(RunState.NOT_STARTED)
        self.steps: List["Task"] = [
            build_task(self, step) for step in self.definition.scenario.steps
        ]

    def _transition(self, state: RunState, step_index: int = None, error: BaseException = None):
        current = self.status
        if state not in ALLOWED_TRANSITIONS[current.state]:
            raise RuntimeError(f"Invalid run state transition {current.state} -> {state}")
        if state is RunState.RUNNING and current.state is RunState.RUNNING:
            if step_index <= current.step_index:
                raise RuntimeError(
                    f"Steps must advance, cannot go from {current.step_index} to {step_index}"
                )
        self.status = RunStatus(state, step_index, error)
        log.debug("Run state changed", status=str(self.status))

    @property
    def identity_names(self) -> Set[str]:
        """Every name that refers to an identity in this scenario."""
        names = {name.lower() for name in self.definition.identities.names}
        names.update(identity.name for identity in self.identities)
        return names | DEFAULT_IDENTITY_ALIASES

    @property
    def client(self) -> ServiceClient:
        """Client for the scenario's canister.

        If no ``deploy`` step ran before, the id of an already deployed canister
        is looked up.
        """
        if self._client is None:
            self.use_canister(self.deployer.lookup())
        return self._client

    def use_canister(self, canister_id: str) -> None:
        log.info("Using canister", canister_id=canister_id)
        self._client = ServiceClient(
            self.dfx, canister_id, call_timeout=self.definition.settings.call_timeout
        )

    def resolve_cap_id(self) -> str:
        if self._cap_id is None:
            strategies = self._cap_strategies
            if strategies is None:
                strategies = default_strategies(self.environment, self.dfx)
            self._cap_id = resolve_cap_id(strategies)
        return self._cap_id

    def resolve_expected(self, expected: Any) -> Any:
        """Turn an ``expected`` option into a concrete value.

        ``{from_storage: key, delta: n}`` refers to a value stored by an earlier
        task, shifted by ``n``.
        """
        if not isinstance(expected, dict):
            return expected
        key = expected.get("from_storage")
        if key is None:
            return expected
        if key not in self.task_storage:
            raise ScenarioConfigurationError(f"Nothing stored under '{key}' by earlier steps")
        value = self.task_storage[key]
        return value + int(expected.get("delta", 0))

    def report(self, task: "Task", identity: Optional[Identity], value: Any) -> None:
        from dip20_player.tasks.token import describe

        label = getattr(task, "label", task.name)
        caller = f" [{identity.name}]" if identity is not None else ""
        self.echo(f"{'  ' * (task.level + 1)}{label}{caller}: {describe(value)}")

    def task_state_changed(self, task: "Task", state: "TaskState"):
        from dip20_player.tasks.base import TaskState

        if task.level != 0:
            return
        if state is TaskState.FINISHED:
            self.echo(f"[✔] {task.name}", fg="green")
        elif state is TaskState.ERRORED:
            self.echo(f"[✗] {task.name}: {task.exception}", fg="red", err=True)

    def run(self, steps: Optional[Sequence["Task"]] = None) -> bool:
        """Run `steps` (by default, those of the scenario definition) in order.

        Returns whether all of them succeeded. The error that ended a failed run
        is available as ``status.error``.
        """
        steps = self.steps if steps is None else list(steps)
        log.info("Running scenario", scenario=self.definition.name, steps=len(steps))

        for index, step in enumerate(steps):
            self._transition(RunState.RUNNING, index)
            self.echo(f"==> [{index + 1}/{len(steps)}] {step.name}", bold=True)
            try:
                step()
            except Exception as ex:
                log.error("Step failed", step=step.name, index=index, error=str(ex))
                self._transition(RunState.FAILED, index, ex)
                return False

        self._transition(RunState.COMPLETED, len(steps) - 1 if steps else None)
        log.info("Scenario completed", scenario=self.definition.name)
        return True

    def provision(self) -> None:
        """Establish what the steps depend on before the first one runs.

        Provisioning failures are raised from here, leaving the run unstarted.
        """
        if any(getattr(task, "needs_cap_id", False) for task in walk_tasks(self.steps)):
            self.resolve_cap_id()

    def run_scenario(self) -> None:
        """Provision, then run the scenario, raising the error of the step that failed."""
        self.provision()
        if not self.run():
            error = self.status.error
            if isinstance(error, ScenarioError):
                raise error
            raise ScenarioError(f"Step {self.status.step_index} failed: {error}") from error
