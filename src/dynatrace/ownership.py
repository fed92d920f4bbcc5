"""
Entity ownership

Resolves the owner tags of entities (dt-owner / owner) against the teams
defined in the builtin:ownership.teams settings schema.
"""

from typing import Any, Dict, List

from src.logging import get_logger

from .client import DynatraceHttpClient

logger = get_logger('OWNERSHIP')

OWNERSHIP_TEAMS_SCHEMA = "builtin:ownership.teams"
OWNER_TAG_KEYS = ("dt-owner", "owner")


def owner_identifiers(entity: Dict[str, Any]) -> List[str]:
    """Team identifiers referenced by the owner tags of an entity."""
    identifiers = []
    for tag in entity.get("tags") or []:
        if tag.get("key") in OWNER_TAG_KEYS and tag.get("value") and tag["value"] not in identifiers:
            identifiers.append(tag["value"])
    return identifiers


async def list_ownership_teams(client: DynatraceHttpClient) -> List[Dict[str, Any]]:
    """All teams of the ownership settings schema, following pagination."""
    teams: List[Dict[str, Any]] = []
    params: Dict[str, Any] = {"schemaIds": OWNERSHIP_TEAMS_SCHEMA, "fields": "objectId,value", "pageSize": 500}

    while True:
        page = await client.request(method="GET", path="/api/v2/settings/objects", params=params) or {}
        teams.extend(item.get("value") or {} for item in page.get("items") or [])

        next_page_key = page.get("nextPageKey")
        if not next_page_key:
            return teams
        # the page key carries all other query parameters
        params = {"nextPageKey": next_page_key}


async def get_ownership_information(client: DynatraceHttpClient, entity_ids: str) -> List[Dict[str, Any]]:
    """
    Ownership of one or more entities.

    Args:
        entity_ids: Comma separated list of entity IDs

    Returns:
        One entry per entity with entityId, displayName, type, the owner
        identifiers found in its tags and the matching team definitions
    """
    ids = [entity_id.strip() for entity_id in (entity_ids or "").split(",") if entity_id.strip()]
    if not ids:
        raise ValueError("Please provide at least one entityId")

    teams_by_identifier = {team.get("identifier"): team for team in await list_ownership_teams(client)}

    ownership = []
    for entity_id in ids:
        entity = await client.request(
            method="GET",
            path=f"/api/v2/entities/{entity_id}",
            params={"fields": "+tags"}
        ) or {}
        identifiers = owner_identifiers(entity)
        ownership.append({
            "entityId": entity.get("entityId", entity_id),
            "displayName": entity.get("displayName"),
            "type": entity.get("type"),
            "ownerIdentifiers": identifiers,
            "teams": [teams_by_identifier[i] for i in identifiers if i in teams_by_identifier],
        })
        logger.debug(f"ownership resolved | entity:{entity_id} | owners:{len(identifiers)}")

    return ownership
