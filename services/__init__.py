"""
Services module for the Restaurant Image Gateway.

Submodules are imported directly (``from services.image_router import
ImageRouter``); the ORM models import ``services.storage.types`` so this
package keeps no eager imports.
"""
