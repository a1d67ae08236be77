"""Collection curation helpers - grow a definition from suggested packages.

Discovery (e.g. LLM-guided search) lives behind PackageSuggester; this module only
folds its candidates into a definition. The result still has to pass validation.
"""

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .protocols import PackageSuggester
from .schema import LATEST
from .schema import CollectionDefinition
from .schema import PackageRef

logger = logging.getLogger(__name__)


class CandidatePackageRef(BaseModel):
    """A package proposed for a collection by a suggester."""

    model_config = ConfigDict(frozen=True)

    package_id: str = Field(min_length=1)
    version: str = LATEST
    required: bool = False
    reason: str = ""
    score: float | None = None

    def to_package_ref(self, install_order: int | None = None) -> PackageRef:
        return PackageRef(
            package_id=self.package_id,
            version=self.version,
            required=self.required,
            reason=self.reason,
            install_order=install_order,
        )


def add_packages(definition: CollectionDefinition, candidates: Iterable[CandidatePackageRef]) -> CollectionDefinition:
    """
    Append candidates not already in the definition.

    New packages are numbered after the current highest installOrder. Candidates
    whose packageId is already present (or repeated) are skipped.

    Args:
        definition: Definition to extend
        candidates: Candidates in the order they should be installed

    Returns:
        New definition (the input is not modified)
    """
    present = set(definition.package_ids)
    next_order = max((p.install_order for p in definition.packages if p.install_order is not None), default=0)

    added = []
    for candidate in candidates:
        if candidate.package_id in present:
            logger.debug(f"Skipping {candidate.package_id}: already in {definition.reference}")
            continue
        present.add(candidate.package_id)
        next_order += 1
        added.append(candidate.to_package_ref(install_order=next_order))

    if not added:
        return definition

    logger.info(f"Added {len(added)} package(s) to {definition.reference}")
    return definition.model_copy(update={"packages": [*definition.packages, *added]})


async def curate_definition(
    definition: CollectionDefinition,
    suggester: PackageSuggester,
    criteria: dict[str, Any] | None = None,
    limit: int | None = None,
) -> CollectionDefinition:
    """
    Ask a suggester for packages and append the new ones.

    Criteria default to the definition's category, framework and tags.

    Args:
        definition: Definition to extend
        suggester: Discovery collaborator
        criteria: Search criteria passed to the suggester
        limit: Maximum number of new packages to add

    Returns:
        New definition with suggested packages appended
    """
    if criteria is None:
        criteria = {
            "category": definition.category,
            "framework": definition.framework,
            "tags": list(definition.tags),
            "exclude": definition.package_ids,
        }

    candidates = await suggester.suggest(criteria)
    logger.debug(f"Suggester returned {len(candidates)} candidate(s) for {definition.reference}")

    present = set(definition.package_ids)
    fresh = [c for c in candidates if c.package_id not in present]
    if limit is not None:
        fresh = fresh[:limit]

    return add_packages(definition, fresh)
