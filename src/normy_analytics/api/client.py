import json
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from normy_analytics.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 1000


def call_supabase_api(
    supabase_config,
    table: str,
    select: str = "*",
    filters: Optional[Dict[str, Any]] = None,
    range_from: Optional[int] = None,
    range_to: Optional[int] = None,
) -> Optional[List[Dict[str, Any]]]:
    """
    Generic wrapper for the Supabase REST (PostgREST) endpoint.

    `filters` maps column -> value and is sent as `column=eq.value`.
    `range_from`/`range_to` are inclusive row offsets sent in the Range header.
    Returns the list of rows, or None on network/data errors.
    """
    url = f"{supabase_config['url'].rstrip('/')}/rest/v1/{quote(table)}"

    headers = {
        "apikey": supabase_config['key'],
        "Authorization": f"Bearer {supabase_config['key']}",
        "Accept": "application/json",
    }
    if range_from is not None and range_to is not None:
        headers["Range-Unit"] = "items"
        headers["Range"] = f"{range_from}-{range_to}"

    params = {"select": select}
    for column, value in (filters or {}).items():
        params[column] = f"eq.{value}"

    try:
        response = requests.get(url, headers=headers, params=params, timeout=300)
        response.raise_for_status()

        data = response.json()

        # PostgREST reports query errors as an object
        if isinstance(data, dict) and 'message' in data:
            logger.error(f"[API ERROR] {table}: {data.get('message')}")
            return None

        return data

    except json.JSONDecodeError:
        logger.error(f"[DATA ERROR] {table}: Invalid JSON response")
        return None
    except requests.exceptions.RequestException as e:
        logger.error(f"[NETWORK ERROR] {table}: {e}")
        return None


def fetch_table(
    supabase_config,
    table: str,
    select: str = "*",
    filters: Optional[Dict[str, Any]] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Optional[List[Dict[str, Any]]]:
    """
    Downloads every row of `table`, page by page, until a short page.
    Returns None if any page fails, so a partial table is never mistaken for a full one.
    """
    rows: List[Dict[str, Any]] = []
    offset = 0

    while True:
        page = call_supabase_api(supabase_config, table, select=select, filters=filters,
                                 range_from=offset, range_to=offset + page_size - 1)
        if page is None:
            return None

        rows.extend(page)
        if len(page) < page_size:
            break
        offset += page_size

    logger.info(f"   > {table}: {len(rows)} filas descargadas")
    return rows
