"""
PaintSnap Backend — Services Layer
====================================

What:  Business logic between routes (HTTP) and persistence.

Service Inventory:
    - EntityStore:             CRUD over User → Project → Area → Photo → Tag
    - ownership:               authorize / require_owner
    - CascadeDeleter:          depth-first deletes inside one transaction
    - AccountLimitEnforcer:    tier quotas checked before creates and moves
    - DualAuthReconciler:      local + Firebase sign-in onto one User row
    - IdentityProvider:        Firebase ID-token verification (interface + impl)
    - BlobStore:               image validation, storage and post-commit release
"""
