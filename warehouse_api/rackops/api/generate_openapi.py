import json
import os

from rackops.api.main import app
from rackops.services.realtime import WATCHED_TABLES

# Get the OpenAPI schema (note: all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Inject non-standard extension with WebSocket endpoint docs
openapi_schema["x-websocket-endpoints"] = [
    {
        "path": "/ws/changes",
        "summary": "Committed changes of inventory, ledger and audit tables",
        "query": ["token", "tables?"],
        "tables": list(WATCHED_TABLES),
        "messages": {
            "client_to_server": ["ping"],
            "server_to_client": [f"{t}.INSERT" for t in WATCHED_TABLES] + ["rack_inventory.UPDATE"],
        },
    },
]

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
