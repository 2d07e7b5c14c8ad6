"""Tool sets offered to the assistants.

- portfolio: read-only lookups for the public Dave
- admin: content creation for Dave Admin
- documents: path-level document editing for the content copilot
- github: repository lookups for the content copilot
"""

from app.services.tools.admin import build_admin_tools
from app.services.tools.documents import build_document_tools, build_legacy_document_tools
from app.services.tools.github import build_github_tools
from app.services.tools.portfolio import build_portfolio_tools

__all__ = [
    "build_admin_tools",
    "build_document_tools",
    "build_github_tools",
    "build_legacy_document_tools",
    "build_portfolio_tools",
]
