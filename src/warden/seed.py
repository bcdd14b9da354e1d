"""
Demo data for Warden.

Two departments (Engineering, Marketing), one user per role in each, four
department projects plus one cross-department wiki, and a spread of draft,
published, archived and locked documents across them.
"""

from datetime import timedelta

from warden.schema import DocumentStatus, ResourceType, Role, User, now_utc
from warden.store import WardenDB, generate_id

# (email, name, role, department)
USERS = [
    ("admin.eng@example.com", "Alice Admin", Role.ADMIN, "Engineering"),
    ("author.eng@example.com", "Bob Author", Role.AUTHOR, "Engineering"),
    ("editor.eng@example.com", "Charlie Editor", Role.EDITOR, "Engineering"),
    ("viewer.eng@example.com", "Diana Viewer", Role.VIEWER, "Engineering"),
    ("admin.marketing@example.com", "Eve Admin", Role.ADMIN, "Marketing"),
    ("author.marketing@example.com", "Frank Author", Role.AUTHOR, "Marketing"),
    ("editor.marketing@example.com", "Grace Editor", Role.EDITOR, "Marketing"),
    ("viewer.marketing@example.com", "Henry Viewer", Role.VIEWER, "Marketing"),
]

# (name, description, owner email, department)
PROJECTS = [
    (
        "API Documentation",
        "Technical documentation for our REST API - Engineering only",
        "admin.eng@example.com",
        "Engineering",
    ),
    (
        "System Architecture",
        "High-level system design documents",
        "author.eng@example.com",
        "Engineering",
    ),
    (
        "Brand Guidelines",
        "Company branding and style guide",
        "admin.marketing@example.com",
        "Marketing",
    ),
    (
        "Campaign Plans",
        "Marketing campaign strategies and plans",
        "author.marketing@example.com",
        "Marketing",
    ),
    (
        "Company Wiki",
        "General knowledge base for all departments",
        "admin.eng@example.com",
        None,
    ),
]

D = DocumentStatus

# (title, content, status, locked, project, creator email, last editor email)
DOCUMENTS = [
    ("Getting Started Guide", "# Getting Started\n\nWelcome to our API...",
     D.PUBLISHED, False, "API Documentation", "author.eng@example.com", "editor.eng@example.com"),
    ("Authentication Flow (Draft)", "# Authentication\n\nWork in progress...",
     D.DRAFT, False, "API Documentation", "author.eng@example.com", "author.eng@example.com"),
    ("API v1 Reference (Archived)", "# API v1\n\nDeprecated - use v2 instead",
     D.ARCHIVED, True, "API Documentation", "admin.eng@example.com", "admin.eng@example.com"),
    ("Endpoints Reference", "# Endpoints\n\nList of all API endpoints...",
     D.PUBLISHED, True, "API Documentation", "admin.eng@example.com", "editor.eng@example.com"),
    ("Database Schema Design", "# Database Design\n\nOur PostgreSQL schema...",
     D.DRAFT, False, "System Architecture", "author.eng@example.com", "author.eng@example.com"),
    ("Microservices Overview", "# Microservices\n\nOur service architecture...",
     D.PUBLISHED, False, "System Architecture", "author.eng@example.com", "author.eng@example.com"),
    ("Logo Usage", "# Logo Guidelines\n\nHow to use our logo...",
     D.PUBLISHED, False, "Brand Guidelines", "author.marketing@example.com", "editor.marketing@example.com"),
    ("Color Palette", "# Colors\n\nPrimary: #FF6B6B...",
     D.PUBLISHED, True, "Brand Guidelines", "admin.marketing@example.com", "admin.marketing@example.com"),
    ("Typography Guide (Draft)", "# Typography\n\nFonts and text styles...",
     D.DRAFT, False, "Brand Guidelines", "author.marketing@example.com", "author.marketing@example.com"),
    ("Q1 2026 Campaign", "# Q1 Campaign\n\nGoals and strategies...",
     D.PUBLISHED, False, "Campaign Plans", "author.marketing@example.com", "editor.marketing@example.com"),
    ("Q4 2025 Retrospective", "# Q4 Results\n\nWhat went well...",
     D.ARCHIVED, False, "Campaign Plans", "admin.marketing@example.com", "admin.marketing@example.com"),
    ("Social Media Strategy", "# Social Media\n\nPlatform-specific tactics...",
     D.PUBLISHED, False, "Campaign Plans", "author.marketing@example.com", "editor.marketing@example.com"),
    ("Email Campaign Templates (Draft)", "# Email Templates\n\nReusable email designs...",
     D.DRAFT, False, "Campaign Plans", "author.marketing@example.com", "author.marketing@example.com"),
    ("Company History", "# Our Story\n\nFounded in 2020...",
     D.PUBLISHED, False, "Company Wiki", "admin.eng@example.com", "admin.eng@example.com"),
    ("Office Locations", "# Offices\n\nSan Francisco, New York, London...",
     D.PUBLISHED, False, "Company Wiki", "author.marketing@example.com", "editor.marketing@example.com"),
    ("Team Directory (Draft)", "# Directory\n\nWho's who in the company...",
     D.DRAFT, False, "Company Wiki", "author.eng@example.com", "author.eng@example.com"),
    ("FAQ (Archived)", "# FAQ\n\nOld frequently asked questions...",
     D.ARCHIVED, True, "Company Wiki", "admin.marketing@example.com", "admin.marketing@example.com"),
]


def seed(db: WardenDB) -> dict[str, int]:
    """
    Replace the database contents with the demo data.

    Records get increasing timestamps so storage order is stable.

    Returns:
        Number of users, projects and documents created
    """
    db.clear()
    start = now_utc() - timedelta(days=30)
    tick = iter(range(10_000))

    def stamp() -> dict:
        at = start + timedelta(minutes=next(tick))
        return {"created_at": at, "updated_at": at}

    users: dict[str, User] = {}
    for email, name, role, department in USERS:
        user = User(id=generate_id(), email=email, name=name, role=role,
                    department=department, **stamp())
        users[email] = db.insert_user(user)

    projects = {}
    for name, description, owner, department in PROJECTS:
        projects[name] = db.insert(ResourceType.PROJECT, {
            "name": name,
            "description": description,
            "owner_id": users[owner].id,
            "department": department,
            **stamp(),
        })

    for title, content, status, locked, project, creator, editor in DOCUMENTS:
        db.insert(ResourceType.DOCUMENT, {
            "title": title,
            "content": content,
            "status": status,
            "is_locked": locked,
            "project_id": projects[project].id,
            "creator_id": users[creator].id,
            "last_edited_by_id": users[editor].id,
            **stamp(),
        })

    return {
        "users": len(users),
        "projects": len(projects),
        "documents": len(DOCUMENTS),
    }
