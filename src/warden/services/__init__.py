"""
Resource services for Warden.

One service per resource type. Each wraps storage calls with the
authorization core and runs inside one RequestContext.
"""

from warden.services.base import ResourceService
from warden.services.documents import DocumentService
from warden.services.projects import ProjectService

__all__ = [
    "DocumentService",
    "ProjectService",
    "ResourceService",
]
