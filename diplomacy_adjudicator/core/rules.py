"""
Rule options for a game: victory threshold, draw limits and build sites.
Loaded from the `rules:` section of a game_info.yaml file.
"""

import logging
from dataclasses import dataclass, fields
from enum import Enum
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


class BuildRule(Enum):
    """Where a power may place new units."""
    HOME_ONLY = "home_only"
    ANY_OWNED = "any_owned"


@dataclass
class RuleOptions:
    """
    Options that change how a game ends and where builds are allowed.

    victory_centers: centers needed for a solo win; None means more than
        half of the map's supply centers.
    max_year: the game ends in a draw once an adjustment phase of this year
        has been adjudicated.
    max_static_years: draw after this many consecutive years without any
        supply center changing hands.
    """
    victory_centers: Optional[int] = None
    max_year: Optional[int] = None
    max_static_years: Optional[int] = None
    build_rule: BuildRule = BuildRule.HOME_ONLY

    def get_victory_centers(self, total_centers: int) -> int:
        if self.victory_centers is not None:
            return self.victory_centers
        return total_centers // 2 + 1

    @staticmethod
    def from_dict(data: Optional[dict]) -> 'RuleOptions':
        """Build options from a mapping, ignoring unknown keys with a warning."""
        if not data:
            return RuleOptions()

        known = {f.name for f in fields(RuleOptions)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown rule option: {key}")
                continue
            if key == "build_rule":
                try:
                    value = BuildRule(str(value).lower())
                except ValueError:
                    raise ValueError(
                        f"Invalid build_rule '{value}'. "
                        f"Expected one of: {', '.join(r.value for r in BuildRule)}"
                    )
            elif value is not None:
                value = int(value)
                if value < 1:
                    raise ValueError(f"Rule option {key} must be positive, got {value}")
            kwargs[key] = value

        return RuleOptions(**kwargs)

    @staticmethod
    def from_yaml(filepath: str) -> 'RuleOptions':
        """Load options from the `rules:` mapping of a YAML file."""
        with open(filepath, 'r') as f:
            data = yaml.safe_load(f) or {}
        return RuleOptions.from_dict(data.get('rules'))
