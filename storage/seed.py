"""
Catalog Seeding

Loads tenants, projects, prompts and published versions from a YAML
file into an InMemoryCatalog. Used for local development.

Expected layout:

    tenants:
      - id: 1
        api_keys: [dev-key]
    projects:
      - {id: 1, tenant_id: 1, name: Demo, slug: demo}
    prompts:
      - id: 1
        tenant_id: 1
        project_id: 1
        name: Greeter
        slug: greeter
        provider: openai
        model: gpt-5-mini
        active_version: 1
        versions:
          - version: 1
            body:
              messages:
                - {role: user, content: "Say hello to {{name}}"}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from storage.memory import InMemoryCatalog
from storage.models import Project, Prompt, PromptRouter, PromptVersion, Tenant

logger = logging.getLogger(__name__)


def _version_body(raw: Any) -> str:
    # Bodies may be written as YAML mappings or as raw JSON text
    if isinstance(raw, str):
        return raw
    return json.dumps(raw or {})


def seed_catalog(catalog: InMemoryCatalog, data: Dict[str, Any]) -> None:
    """Populate catalog from already-parsed seed data."""
    for item in data.get("tenants") or []:
        catalog.add_tenant(Tenant(
            id=int(item["id"]),
            is_active=item.get("is_active", True),
            api_keys=tuple(item.get("api_keys") or ()),
        ))

    for item in data.get("projects") or []:
        catalog.add_project(Project(
            id=int(item["id"]),
            tenant_id=int(item["tenant_id"]),
            name=item["name"],
            slug=item["slug"],
            is_active=item.get("is_active", True),
        ))

    for item in data.get("prompts") or []:
        versions = item.get("versions") or []
        prompt = catalog.add_prompt(Prompt(
            id=int(item["id"]),
            tenant_id=int(item["tenant_id"]),
            project_id=int(item["project_id"]),
            name=item["name"],
            slug=item["slug"],
            provider=item["provider"],
            model=item["model"],
            latest_version=max((int(v["version"]) for v in versions), default=0),
            is_active=item.get("is_active", True),
        ))

        for version in versions:
            catalog.add_version(PromptVersion(
                tenant_id=prompt.tenant_id,
                project_id=prompt.project_id,
                prompt_id=prompt.id,
                version=int(version["version"]),
                name=version.get("name", prompt.name),
                slug=version.get("slug", prompt.slug),
                provider=version.get("provider", prompt.provider),
                model=version.get("model", prompt.model),
                body=_version_body(version.get("body")),
            ))

        if item.get("active_version") is not None:
            catalog.set_router(PromptRouter(
                tenant_id=prompt.tenant_id,
                project_id=prompt.project_id,
                prompt_id=prompt.id,
                version=int(item["active_version"]),
            ))


def load_seed_file(catalog: InMemoryCatalog, path: str) -> None:
    """Read a YAML seed file into catalog. Missing files are skipped."""
    seed_path = Path(path)
    if not seed_path.exists():
        logger.warning(f"[SEED] Seed file not found: {seed_path}")
        return

    with open(seed_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    seed_catalog(catalog, data)
    logger.info(
        f"[SEED] Loaded {len(data.get('tenants') or [])} tenants, "
        f"{len(data.get('projects') or [])} projects, "
        f"{len(data.get('prompts') or [])} prompts from {seed_path}"
    )
