from typing import Any, Dict, List, Tuple

import structlog

from dip20_player.exceptions.config import ScenarioConfigurationError
from dip20_player.utils.configuration.base import ConfigMapping

log = structlog.get_logger(__name__)


class ScenarioConfig(ConfigMapping):
    """Thin wrapper class around the "scenario" setting section of a loaded scenario .yaml file.

    Example scenario yaml::

        >my_scenario.yaml
        version: 1
        ...
        scenario:
          serial: # Root task
            tasks:
              - deploy: {}
              - ...
    """

    CONFIGURATION_ERROR = ScenarioConfigurationError

    def __init__(self, config: dict) -> None:
        super(ScenarioConfig, self).__init__(config.get("scenario") or {})
        self.validate()

    def validate(self):
        self.assert_option(self.dict, "Must specify 'scenario' setting section!")
        self.assert_option(
            len(self) == 1,
            "Multiple tasks sections defined in scenario configuration! Must be only one!",
        )

    @property
    def root_task(self) -> Tuple[str, Any]:
        """Return the scenario's root task configuration as a tuple.

        The tuple contains the name of the task, as well as the config for it.
        """
        (root_task_tuple,) = self.items()
        return root_task_tuple

    @property
    def steps(self) -> List[Dict[str, Any]]:
        """Return the top level steps of the scenario.

        For a ``serial`` root these are its ``tasks``; any other root task is a
        single step scenario.
        """
        root_type, root_config = self.root_task
        if root_type == "serial":
            tasks = (root_config or {}).get("tasks") or []
            self.assert_option(isinstance(tasks, list), "scenario.serial.tasks must be a list")
            return tasks
        return [{root_type: root_config}]
