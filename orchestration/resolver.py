"""
Entity Resolver

Resolves the project, prompt and active prompt version addressed by an
execute request.

DESIGN RULES:
- Every lookup takes the tenant id from the authenticated caller
- Identifiers are classified once (EntityRef) at the API boundary
- Returns None for anything missing; callers decide the HTTP status
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from storage.models import Project, Prompt, PromptVersion
from storage.repository import CatalogRepository

logger = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class EntityRef:
    """
    A project or prompt identifier: either a numeric id or a slug.

    Exactly one of numeric_id / slug is set.
    """

    numeric_id: Optional[int] = None
    slug: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> "EntityRef":
        """Integer literals resolve by id, anything else by slug."""
        text = raw.strip()
        if _INTEGER.fullmatch(text):
            return cls(numeric_id=int(text))
        return cls(slug=text)

    @property
    def is_numeric(self) -> bool:
        return self.numeric_id is not None

    def __str__(self) -> str:
        return str(self.numeric_id) if self.is_numeric else str(self.slug)


class EntityResolver:
    """Tenant-scoped lookups over the catalog repository."""

    def __init__(self, catalog: CatalogRepository):
        self._catalog = catalog

    async def resolve_project(self, tenant_id: int, ref: EntityRef) -> Optional[Project]:
        if ref.is_numeric:
            return await self._catalog.get_project_by_id(tenant_id, ref.numeric_id)
        return await self._catalog.get_project_by_slug(tenant_id, ref.slug)

    async def resolve_prompt(self, tenant_id: int, project_id: int, ref: EntityRef) -> Optional[Prompt]:
        if ref.is_numeric:
            return await self._catalog.get_prompt_by_id(tenant_id, project_id, ref.numeric_id)
        return await self._catalog.get_prompt_by_slug(tenant_id, project_id, ref.slug)

    async def resolve_active_version(
        self, tenant_id: int, project_id: int, prompt_id: int
    ) -> Optional[PromptVersion]:
        """
        Follow the prompt's router to its active version.

        Returns None when no router exists or the routed version is missing.
        """
        router = await self._catalog.get_router(tenant_id, project_id, prompt_id)
        if router is None:
            return None

        version = await self._catalog.get_version(tenant_id, project_id, prompt_id, router.version)
        if version is None:
            logger.warning(
                f"[RESOLVER] Router for prompt {prompt_id} points at missing version {router.version}"
            )
        return version
