"""Attack scenarios run by the verification harness."""

from catalog.scenarios.base import AttackScenario, ScenarioTable
from catalog.scenarios.defaults import SCENARIO_TABLE_VERSION, default_scenario_table

__all__ = [
    "AttackScenario",
    "ScenarioTable",
    "SCENARIO_TABLE_VERSION",
    "default_scenario_table",
]
