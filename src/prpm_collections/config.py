"""Validator configuration - thresholds and limits are app policy.

Apps inject a ValidatorConfig; the library never reads environment variables.
Optionally loaded from the [tool.prpm.validator] section of a pyproject.toml.
"""

import tomllib
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator


class ValidatorConfig(BaseModel):
    """Quality thresholds and resolution limits for one validator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Quality heuristics
    min_packages: int = Field(default=3, ge=0)
    required_ratio_min: float = Field(default=0.3, ge=0.0, le=1.0)
    required_ratio_max: float = Field(default=0.8, ge=0.0, le=1.0)
    min_tags: int = Field(default=3, ge=0)
    max_tags: int = Field(default=7, ge=0)
    min_description_length: int = Field(default=40, ge=0)

    # Escalate advisory rules to errors for official collections
    strict_official: bool = False

    # Registry lookups
    lookup_concurrency: int = Field(default=8, ge=1)
    lookup_timeout: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def _check_ranges(self) -> "ValidatorConfig":
        if self.required_ratio_min > self.required_ratio_max:
            raise ValueError(
                f"required_ratio_min ({self.required_ratio_min}) exceeds required_ratio_max ({self.required_ratio_max})"
            )
        if self.min_tags > self.max_tags:
            raise ValueError(f"min_tags ({self.min_tags}) exceeds max_tags ({self.max_tags})")
        return self

    @classmethod
    def from_pyproject(cls, pyproject_path: Path) -> "ValidatorConfig":
        """
        Load validator configuration from pyproject.toml.

        Reads the [tool.prpm.validator] section; a missing section yields defaults.

        Args:
            pyproject_path: Path to pyproject.toml file

        Returns:
            ValidatorConfig instance

        Raises:
            FileNotFoundError: If pyproject.toml doesn't exist
            tomllib.TOMLDecodeError: If invalid TOML
            pydantic.ValidationError: If a value is out of range or unknown
        """
        if not pyproject_path.exists():
            raise FileNotFoundError(f"pyproject.toml not found: {pyproject_path}")

        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)

        section = data.get("tool", {}).get("prpm", {}).get("validator", {})
        return cls(**section)
