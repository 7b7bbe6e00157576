import pathlib
from typing import Optional

import jinja2
import structlog
import yaml

from dip20_player.constants import BUILTIN_SCENARIO
from dip20_player.exceptions.config import ScenarioConfigurationError
from dip20_player.utils.configuration import (
    EnvironmentConfig,
    IdentitiesConfig,
    ScenarioConfig,
    SettingsConfig,
    TokenConfig,
)

log = structlog.get_logger(__name__)

BUILTIN_SCENARIO_DIR = pathlib.Path(__file__).parent.joinpath("scenarios")


def builtin_scenario_path(name: str = BUILTIN_SCENARIO) -> pathlib.Path:
    return BUILTIN_SCENARIO_DIR.joinpath(f"{name}.yaml")


class ScenarioDefinition:
    """Interface for a Scenario `.yaml` file.

    The file is rendered as a jinja template using the variables of the
    :class:`EnvironmentConfig` (``network``, ``genesis_amount``, ...) and only
    parsed as yaml afterwards. Its sections are then validated.
    """

    def __init__(
        self,
        yaml_path: pathlib.Path,
        environment: EnvironmentConfig,
        base_dir: Optional[pathlib.Path] = None,
    ) -> None:
        self.path = yaml_path
        self.environment = environment
        with yaml_path.open() as f:
            yaml_template = jinja2.Template(f.read(), undefined=jinja2.StrictUndefined)
            try:
                rendered_yaml = yaml_template.render(**environment.template_variables())
            except jinja2.UndefinedError as ex:
                raise ScenarioConfigurationError(f"{yaml_path.name}: {ex}") from ex
            self._loaded = yaml.safe_load(rendered_yaml) or {}

        if not isinstance(self._loaded, dict):
            raise ScenarioConfigurationError(f"{yaml_path.name} must contain a mapping")

        self.settings = SettingsConfig(self._loaded, environment)
        self.token = TokenConfig(self._loaded, base_dir or environment.project_dir)
        self.identities = IdentitiesConfig(self._loaded)
        self.scenario = ScenarioConfig(self._loaded)
        log.debug("Scenario definition loaded", path=str(yaml_path), name=self.name)

    @property
    def name(self) -> str:
        """Return the name of the scenario file, sans extension."""
        return self.path.stem

    @property
    def version(self) -> int:
        return int(self._loaded.get("version", 1))
