"""
Catalog loader.

Reads YAML skill-tree catalogs into a CurriculumGraph. The bundled
catalog lives in linework/curriculum/catalog/ and is used unless a path is
given or LINEWORK_CATALOG_PATH is set.
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from linework.curriculum.graph import CurriculumGraph
from linework.curriculum.models import SkillTree
from linework.errors import CatalogError

BUNDLED_CATALOG = "fundamentals.yaml"


def _read_bundled() -> str:
    return resources.files("linework.curriculum").joinpath("catalog", BUNDLED_CATALOG).read_text(
        encoding="utf-8"
    )


def parse_trees(document: Any, source: str = "<catalog>") -> list[SkillTree]:
    """Validate a parsed catalog document into SkillTree models."""
    if not isinstance(document, dict) or not isinstance(document.get("skill_trees"), list):
        raise CatalogError(f"{source}: expected a mapping with a 'skill_trees' list")

    trees = []
    for index, raw in enumerate(document["skill_trees"]):
        try:
            trees.append(SkillTree.model_validate(raw))
        except ValidationError as e:
            raise CatalogError(f"{source}: skill_trees[{index}] is invalid:\n{e}") from e
    return trees


def load_trees(path: Path | None = None) -> list[SkillTree]:
    """Read and validate skill trees from a YAML file (bundled catalog by default)."""
    if path is None:
        source = f"bundled:{BUNDLED_CATALOG}"
        text = _read_bundled()
    else:
        source = str(path)
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise CatalogError(f"Cannot read catalog {path}: {e}") from e

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CatalogError(f"{source}: invalid YAML: {e}") from e

    return parse_trees(document, source)


def load_catalog(path: Path | None = None) -> CurriculumGraph:
    """
    Build a CurriculumGraph from a catalog file.

    Trees are registered in file order, which becomes their recommendation
    priority. Graph errors (cycles, dangling prerequisites) propagate.
    """
    trees = load_trees(path)
    graph = CurriculumGraph()
    for tree in trees:
        graph.register(tree)
    logger.info(f"Loaded catalog with {len(graph.trees())} skill trees and {len(graph)} lessons")
    return graph
