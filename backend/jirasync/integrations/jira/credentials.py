"""Resolve a Jira site's connection details with the decrypted API token."""

from __future__ import annotations

from sqlalchemy.orm import Session

from jirasync.core.crypto import decrypt_secret
from jirasync.core.exceptions import SiteNotFoundError
from jirasync.integrations.jira.schemas import SiteCredentials
from jirasync.models.site import JiraSite


def resolve_site_credentials(db: Session, site_id: str) -> SiteCredentials:
    site = db.get(JiraSite, site_id)
    if site is None:
        raise SiteNotFoundError(site_id)
    return SiteCredentials(
        base_url=site.base_url.rstrip("/"),
        admin_email=site.admin_email,
        token=decrypt_secret(site.token_cipher),
    )
