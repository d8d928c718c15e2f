"""Codex auth.json inspection: plan type, organizations and active workspace."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

import msgspec

from tokenbar.config.cache import WorkspaceCache
from tokenbar.config.credentials import read_credential
from tokenbar.providers.base import decode_jwt_payload

logger = logging.getLogger(__name__)

AUTH_CLAIM = "https://api.openai.com/auth"


class CodexOrganization(msgspec.Struct, frozen=True):
    """An organization listed in the Codex id token."""

    id: str  # e.g. "org-mArd7ATirlXbS5miCvucSkSG"
    title: str  # e.g. "Personal"
    is_default: bool = False
    role: str = "unknown"

    @property
    def slug(self) -> str:
        """Lower-case, dash-separated form of the title for instance ids."""
        return re.sub(r"[^a-z0-9-]", "", self.title.lower().replace(" ", "-")) or self.id.lower()


def load_auth(codex_dir: Path) -> dict[str, Any] | None:
    """Load ``auth.json`` from the Codex home directory."""
    content = read_credential(codex_dir / "auth.json")
    if not content:
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def id_token_claims(auth: dict[str, Any] | None) -> dict[str, Any] | None:
    """Decode the claims of the id token stored in auth.json."""
    tokens = auth.get("tokens") if auth else None
    id_token = tokens.get("id_token") if isinstance(tokens, dict) else None
    if not isinstance(id_token, str):
        return None
    return decode_jwt_payload(id_token)


def _auth_claim(claims: dict[str, Any] | None) -> dict[str, Any]:
    value = claims.get(AUTH_CLAIM) if claims else None
    return value if isinstance(value, dict) else {}


def read_plan_type(codex_dir: Path) -> str | None:
    """Return the plan from ``plan_type`` or the id token's ``chatgpt_plan_type``."""
    auth = load_auth(codex_dir)
    if auth is None:
        return None

    if isinstance(plan := auth.get("plan_type"), str):
        return plan.upper()

    claims = id_token_claims(auth)
    for source in (claims or {}, _auth_claim(claims)):
        if isinstance(plan := source.get("chatgpt_plan_type"), str):
            return plan.upper()
    return None


def discover_organizations(codex_dir: Path) -> list[CodexOrganization]:
    """List the organizations the signed-in user belongs to.

    Returns an empty list on any error.
    """
    claims = id_token_claims(load_auth(codex_dir))
    organizations = _auth_claim(claims).get("organizations")
    if not isinstance(organizations, list):
        return []

    result = []
    for org in organizations:
        if not isinstance(org, dict):
            continue
        org_id, title = org.get("id"), org.get("title")
        if not isinstance(org_id, str) or not isinstance(title, str):
            continue
        role = org.get("role")
        result.append(
            CodexOrganization(
                id=org_id,
                title=title,
                is_default=org.get("is_default") is True,
                role=role if isinstance(role, str) else "unknown",
            )
        )
    return result


def active_workspace_id(codex_dir: Path) -> str | None:
    """Return the ChatGPT workspace Codex is currently signed into."""
    auth = load_auth(codex_dir)
    claims = id_token_claims(auth)
    workspace = _auth_claim(claims).get("chatgpt_account_id")
    if isinstance(workspace, str) and workspace:
        return workspace

    tokens = auth.get("tokens") if auth else None
    account_id = tokens.get("account_id") if isinstance(tokens, dict) else None
    return account_id if isinstance(account_id, str) and account_id else None


def learn_active_workspace(codex_dir: Path, cache: WorkspaceCache) -> str | None:
    """Record which organization the active workspace belongs to, when inferable.

    Returns:
        The org id that was newly mapped, or None
    """
    workspace = active_workspace_id(codex_dir)
    if workspace is None:
        return None

    organizations = discover_organizations(codex_dir)
    if not organizations:
        return None

    default_org = next((org.id for org in organizations if org.is_default), None)
    return cache.learn(workspace, [org.id for org in organizations], default_org)
