from typing import TYPE_CHECKING, Any

import structlog

from dip20_player.tasks.base import Task

if TYPE_CHECKING:
    from dip20_player.runner import ScenarioRunner

log = structlog.get_logger(__name__)


class DeployTask(Task):
    """Deploy (or reinstall) the token canister and point the runner's client at it.

    The init arguments come from the scenario's ``token`` section; the owner and
    fee collector are identity names resolved to principals.

    Config options:

      - ``mode``: ``install``, ``reinstall`` or ``upgrade``. Defaults to the mode
        given on the command line.
      - ``reuse``: do not deploy, only look up the id of the existing canister.

    Example::

        - deploy: {mode: reinstall}
    """

    _name = "deploy"

    def __init__(self, runner: "ScenarioRunner", config: Any, parent: Task = None) -> None:
        super().__init__(runner, config or {}, parent)

    def _run(self, *args, **kwargs):  # pylint: disable=unused-argument
        runner = self._runner
        if self._config.get("reuse"):
            canister_id = runner.deployer.lookup()
        else:
            token = runner.definition.token
            owner = runner.identities.principal_of(token.owner)
            fee_to = runner.identities.principal_of(token.fee_to)
            cap_id = runner.resolve_cap_id()
            mode = self._config.get("mode", runner.environment.mode)
            canister_id = runner.deployer.deploy(
                token.init_args(owner=owner, fee_to=fee_to, cap_id=cap_id), mode=mode
            )
        runner.use_canister(canister_id)
        runner.report(self, None, canister_id)
        return canister_id

    @property
    def label(self):
        return "Canister"

    @property
    def needs_cap_id(self) -> bool:
        return not self._config.get("reuse")
