"""Prometheus metrics for the import pipeline."""

from prometheus_client import Counter

GEOCODE_REQUESTS = Counter(
    "place_importer_geocode_requests_total",
    "Geocoding backend calls by outcome",
    ["backend", "outcome"],
)

CANDIDATES_EXTRACTED = Counter(
    "place_importer_candidates_extracted_total",
    "Address candidates contributed by each extraction strategy",
    ["strategy"],
)

PLACE_RECORDS_REJECTED = Counter(
    "place_importer_place_records_rejected_total",
    "Generated place records dropped by validation",
)

CANDIDATES_RESOLVED = Counter(
    "place_importer_candidates_resolved_total",
    "Candidates finishing geocoding by final status",
    ["status"],
)
