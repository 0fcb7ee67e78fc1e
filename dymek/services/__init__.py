"""
Services layer - business logic goes here.

- geohash_index: geohash cells and radius covering
- marker_store / report_store: records, queries, status delegation
- status_workflow: transition table, persistence, owner notification
- user_directory / push_service: notification recipients and delivery
- registry: wires everything from settings
"""
