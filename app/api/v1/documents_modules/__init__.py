"""
Document API modules.

Modules:
- document_upload: Upload, replace and batch upload
- document_management: List, get and delete
- common: Shared utilities and dependencies
"""

__all__ = []
