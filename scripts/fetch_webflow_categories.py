"""Print the Webflow category name -> item id map as JSON.

The output is suitable for WEBFLOW_CATEGORY_MAP or a WEBFLOW_CATEGORY_MAP_FILE.
"""
import json
import sys

from src.backend.crm.config import WebflowConfigError, load_webflow_config
from src.backend.crm.integrations.webflow import WebflowClient, WebflowError


def main() -> int:
    try:
        config = load_webflow_config()
    except WebflowConfigError as exc:
        print(f"config error: {exc}", file=sys.stderr)
        return 2
    if not config.site_id:
        print("WEBFLOW_SITE_ID is not set", file=sys.stderr)
        return 2
    with WebflowClient.from_config(config) as client:
        try:
            collections = client.list_site_collections(config.site_id)
            match = next(
                (
                    c
                    for c in collections
                    if "categor" in str(c.get("displayName", "")).lower() or "categor" in str(c.get("slug", "")).lower()
                ),
                None,
            )
            if match is None:
                names = ", ".join(f"{c.get('displayName')} ({c.get('slug')})" for c in collections)
                print(f"no categories collection found; available: {names}", file=sys.stderr)
                return 1
            items = client.list_items(match["id"])
        except WebflowError as exc:
            print(f"webflow error: {exc}", file=sys.stderr)
            return 1
    mapping = {}
    for item in items:
        data = item.get("fieldData") or {}
        name = data.get("name") or data.get("title") or data.get("slug")
        if name:
            mapping[str(name)] = item["id"]
    print(json.dumps(mapping, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
