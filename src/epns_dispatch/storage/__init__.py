# src/epns_dispatch/storage/__init__.py
"""
Content-addressed storage for notification payloads.

These modules are small and explicit:
- ipfs_client talks to one IPFS node over the Kubo HTTP API,
- uploader owns the gateway plan (primary, then public) and pinning,
- nothing here keeps local state between uploads.
"""
