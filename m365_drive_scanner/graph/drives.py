"""
Drive item source — the Graph-backed ``list_children`` collaborator.
Lists driveItem children and resolves a site URL to a document library drive.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from ..config import DRIVE_ITEM_SELECT
from ..scanner.models import Item, ListingOutcome
from .client import GraphClient, GraphAPIError

logger = logging.getLogger("m365_drive_scanner.graph.drives")

ROOT_ITEM = "root"


class DriveResolutionError(Exception):
    """Raised when a site or document library cannot be found."""
    pass


def item_from_drive_item(raw: dict) -> Item:
    """Convert a Graph driveItem resource into an Item."""
    is_folder = "folder" in raw
    size = 0 if is_folder else max(int(raw.get("size") or 0), 0)
    parent_ref = raw.get("parentReference") or {}
    # parentReference.path looks like /drives/{id}/root:/Folder/Sub
    parent_path = parent_ref.get("path", "")
    if ":" in parent_path:
        parent_path = parent_path.split(":", 1)[1].lstrip("/")
    return Item(
        id=raw.get("id", ""),
        name=raw.get("name", ""),
        is_folder=is_folder,
        size=size,
        parent_path=parent_path,
        web_url=raw.get("webUrl"),
        last_modified=raw.get("lastModifiedDateTime"),
    )


class DriveItemSource:
    """
    Lists the children of driveItems in one drive.
    The GraphClient is passed in explicitly and must already be open.
    """

    def __init__(self, graph: GraphClient, drive_id: str):
        self.graph = graph
        self.drive_id = drive_id

    def _children_endpoint(self, node_id: str) -> str:
        if node_id == ROOT_ITEM:
            return f"drives/{self.drive_id}/root/children"
        return f"drives/{self.drive_id}/items/{node_id}/children"

    async def list_children(self, node_id: str) -> ListingOutcome:
        endpoint = self._children_endpoint(node_id)
        try:
            raw_items = await self.graph.get_all_pages(
                endpoint,
                params={"$select": DRIVE_ITEM_SELECT},
            )
        except GraphAPIError as e:
            return ListingOutcome.failure(str(e))
        except httpx.HTTPError as e:
            return ListingOutcome.failure(f"{type(e).__name__}: {e}")
        return ListingOutcome.success(item_from_drive_item(raw) for raw in raw_items)

    __call__ = list_children


async def resolve_site_id(graph: GraphClient, site_url: str) -> str:
    """Resolve https://contoso.sharepoint.com/sites/Name to a Graph site id."""
    parsed = urlparse(site_url)
    if not parsed.netloc:
        raise DriveResolutionError(f"Not an absolute site URL: {site_url!r}")
    site_path = parsed.path.rstrip("/")
    endpoint = f"sites/{parsed.netloc}:{site_path}" if site_path else f"sites/{parsed.netloc}"
    try:
        site = await graph.get(endpoint, params={"$select": "id,displayName"})
    except (GraphAPIError, httpx.HTTPError) as e:
        raise DriveResolutionError(f"Site lookup failed for {site_url}: {e}")
    logger.info(f"Resolved site {site.get('displayName')!r} -> {site.get('id')}")
    return site["id"]


async def resolve_drive_id(
    graph: GraphClient,
    site_url: str,
    library: Optional[str] = None,
) -> str:
    """
    Resolve a site URL (and optional library display name) to a drive id.
    Without a library name the site's default document library is used.
    """
    site_id = await resolve_site_id(graph, site_url)
    try:
        if not library:
            drive = await graph.get(f"sites/{site_id}/drive", params={"$select": "id,name"})
            return drive["id"]
        drives = await graph.get_all_pages(
            f"sites/{site_id}/drives", params={"$select": "id,name"}
        )
    except (GraphAPIError, httpx.HTTPError) as e:
        raise DriveResolutionError(f"Drive lookup failed for {site_url}: {e}")

    wanted = library.lower()
    for drive in drives:
        if (drive.get("name") or "").lower() == wanted:
            return drive["id"]
    names = ", ".join(sorted(d.get("name", "?") for d in drives)) or "none"
    raise DriveResolutionError(
        f"Library {library!r} not found on {site_url} (available: {names})"
    )
