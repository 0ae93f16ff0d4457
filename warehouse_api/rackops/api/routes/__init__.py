"""
API route modules for rack operations.

This package contains subrouters for:
- Labels: part label parsing against the BOM master
- Picking, Supply, Big Part Supply, Kobetsu: session-based process workflows
- Inventory: stock levels, ledgers, adjustments, reconciliation
- Master Data, Activity Log, Reports: read side and exports
- Auth: the current operator

Routers are included from rackops.api.main (under the /api/v1 prefix).
"""
