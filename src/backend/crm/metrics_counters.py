from typing import Any

from prometheus_client import Counter, CollectorRegistry


def _counter(name: str, doc: str, labels: list) -> Any:
    try:
        return Counter(name, doc, labels)
    except ValueError:
        # Tests may import the app multiple times; avoid duplicate metric registration
        return Counter(name, doc, labels, registry=CollectorRegistry())


WEBFLOW_REQUESTS = _counter("webflow_requests_total", "Webflow API calls", ["method", "status"])
SYNC_ITEMS = _counter("webflow_sync_items_total", "Child items processed by profile sync", ["collection", "outcome"])
BLOG_SYNC = _counter("webflow_blog_sync_total", "Blog posts processed by content sync", ["outcome"])


def sum_counter(counter: Any) -> int:
    total = 0.0
    for metric in counter.collect():
        for sample in metric.samples:
            if sample.name.endswith("_total"):
                total += float(sample.value)
    return int(total)
