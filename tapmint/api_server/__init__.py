"""
API server package — HTTP interface for the relayer.

Exposes /api/mint, /api/minted, /api/resolve and /api/health with CORS and
per-request logging; delegates to the relay handlers for all decisions.
"""
