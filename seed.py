"""
Project: Sitly Bookings
Description:
Loads demo tables for a local run. Safe to re-run: a restaurant that
already has tables is left alone.
"""

from app import create_app

DEMO_RESTAURANT = "demo-restaurant"

DEMO_TABLES = [
    {"name": "Table 1", "capacity": 2, "type": "indoor"},
    {"name": "Table 2", "capacity": 4, "type": "indoor"},
    {"name": "VIP-1", "capacity": 6, "type": "vip"},
    {"name": "Terrace 1", "capacity": 4, "type": "outdoor"},
    {"name": "Bar 1", "capacity": 2, "type": "bar"},
    {"name": "Table 3", "capacity": 8, "type": "indoor"},
]

app = create_app()
with app.app_context():
    registry = app.extensions["table_registry"]
    if not registry.list_tables(DEMO_RESTAURANT, include_archived=True):
        for data in DEMO_TABLES:
            result = registry.create_table(DEMO_RESTAURANT, data)
            if not result.ok:
                raise SystemExit(f"Could not seed {data['name']}: {result.error.message}")

    print(f"Seeded. Restaurant id={DEMO_RESTAURANT}, tables={len(registry.list_tables(DEMO_RESTAURANT))}")
