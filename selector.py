import logging
from typing import List, Optional

import numpy as np

from layers import (
    ComponentDescriptor,
    EmptyLayer,
    Kind,
    LayerSpec,
    NoRenderableComponent,
    Role,
    SelectedComponent,
    kind_for,
)

logger = logging.getLogger(__name__)

VECTOR_PREFERRED_ROLES = (Role.BASE, Role.FEATURE)


def list_candidates(repository, layer: LayerSpec, species: str) -> List[ComponentDescriptor]:
    """Query the repository, treating a failing lookup as no candidates."""
    try:
        return list(repository.list(species, layer.category) or [])
    except Exception as e:
        logger.warning(f"Failed to list components for {species}/{layer.category}: {e}")
        return []


def renderable(candidates: List[ComponentDescriptor]) -> List[ComponentDescriptor]:
    """Keep candidates whose kind is a recognised image format."""
    result = []
    for candidate in candidates:
        kind = candidate.kind or kind_for(candidate.name)
        if kind is None:
            continue
        if kind is not candidate.kind:
            candidate = ComponentDescriptor(candidate.locator, candidate.name, kind)
        result.append(candidate)
    return result


def choose(
    candidates: List[ComponentDescriptor], role: Role, rng: np.random.Generator
) -> ComponentDescriptor:
    """Pick one candidate uniformly, restricted to vector art for base/feature roles."""
    pool = candidates
    if role in VECTOR_PREFERRED_ROLES:
        vectors = [c for c in candidates if c.kind is Kind.VECTOR]
        if vectors:
            pool = vectors
    return pool[int(rng.integers(len(pool)))]


def select_component(
    layer: LayerSpec, species: str, repository, rng: np.random.Generator
) -> Optional[SelectedComponent]:
    """Select one component for a layer.

    Returns None for an optional layer without usable candidates.

    Raises:
        EmptyLayer: a required layer has no candidates at all.
        NoRenderableComponent: a required layer has candidates but none is an image.
    """
    path = f"{species}/{layer.category}"
    candidates = list_candidates(repository, layer, species)
    logger.debug(f"Found {len(candidates)} components for layer: {path}")

    if not candidates:
        if layer.optional:
            logger.info(f"No components found for optional layer: {path}, skipping")
            return None
        raise EmptyLayer(f"No components found for layer: {path}")

    images = renderable(candidates)
    if not images:
        if layer.optional:
            logger.info(f"No image files found for optional layer: {path}, skipping")
            return None
        raise NoRenderableComponent(f"No image files found for layer: {path}")

    chosen = choose(images, layer.role, rng)
    return SelectedComponent(chosen, layer.category, layer.role)
