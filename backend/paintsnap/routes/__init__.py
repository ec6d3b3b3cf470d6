"""
PaintSnap Backend — API Routes Package
========================================

Route Inventory:
    - auth.py:      /api/auth/{register,login,verify-token,logout,user,limits}
    - projects.py:  /api/projects, /api/projects/{id}, /api/projects/{id}/areas
    - areas.py:     /api/areas, /api/areas/{id}, /api/areas/{id}/photos
    - photos.py:    /api/photos, /api/photos/{id}, /move, /image
    - tags.py:      /api/photos/{photo_id}/tags, /{tag_id}, /{tag_id}/image
    - health.py:    GET /health

Routes stay thin: parse the request, call EntityStore / the reconciler /
the limit enforcer, shape the response. Ownership and validation errors are
raised as PaintSnapError subclasses and rendered by the global handlers.
"""
