# dbforge/seeds/templates.py
"""Built-in (system) templates and workflow definitions loaded into every new catalog."""
from typing import Any, Dict


def _options(*pairs):
    return {"options": [{"name": n, "color": c} for n, c in pairs]}


def _text(content: str) -> list:
    return [{"text": {"content": content}}]


SYSTEM_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "project_management": {
        "title": "Project Management Hub",
        "description": "Complete project management system with tasks, timelines, and team collaboration",
        "properties": {
            "Project Name": {"title": {}},
            "Status": {"select": _options(
                ("Planning", "gray"), ("In Progress", "blue"), ("Review", "yellow"),
                ("Complete", "green"), ("On Hold", "red"),
            )},
            "Priority": {"select": _options(
                ("Low", "gray"), ("Medium", "yellow"), ("High", "orange"), ("Critical", "red"),
            )},
            "Team Lead": {"people": {}},
            "Start Date": {"date": {}},
            "Due Date": {"date": {}},
            "Progress": {"number": {"format": "percent"}},
            "Budget": {"number": {"format": "dollar"}},
            "Description": {"rich_text": {}},
            "Tags": {"multi_select": _options(
                ("Frontend", "blue"), ("Backend", "green"), ("Design", "pink"), ("Research", "purple"),
            )},
        },
        "sampleData": [
            {
                "Project Name": {"title": _text("Website Redesign")},
                "Status": {"select": {"name": "In Progress"}},
                "Priority": {"select": {"name": "High"}},
                "Progress": {"number": 65},
                "Description": {"rich_text": _text("Complete overhaul of company website with modern design")},
            },
        ],
    },
    "customer_crm": {
        "title": "Customer Relationship Manager",
        "description": "Comprehensive CRM system for managing customer relationships and sales pipeline",
        "properties": {
            "Company Name": {"title": {}},
            "Contact Person": {"rich_text": {}},
            "Email": {"email": {}},
            "Phone": {"phone_number": {}},
            "Status": {"select": _options(
                ("Lead", "yellow"), ("Qualified", "blue"), ("Proposal", "orange"),
                ("Customer", "green"), ("Lost", "red"),
            )},
            "Industry": {"select": _options(
                ("Technology", "blue"), ("Finance", "green"), ("Healthcare", "red"),
                ("Education", "purple"), ("Retail", "yellow"),
            )},
            "Deal Value": {"number": {"format": "dollar"}},
            "Last Contact": {"date": {}},
            "Next Follow-up": {"date": {}},
            "Notes": {"rich_text": {}},
            "Website": {"url": {}},
        },
        "sampleData": [
            {
                "Company Name": {"title": _text("Tech Solutions Inc")},
                "Contact Person": {"rich_text": _text("John Smith, CEO")},
                "Status": {"select": {"name": "Qualified"}},
                "Industry": {"select": {"name": "Technology"}},
                "Deal Value": {"number": 50000},
            },
        ],
    },
    "content_library": {
        "title": "Content Library & Knowledge Base",
        "description": "Organize articles, resources, documentation, and knowledge assets",
        "properties": {
            "Title": {"title": {}},
            "Type": {"select": _options(
                ("Article", "blue"), ("Tutorial", "green"), ("Documentation", "gray"),
                ("Video", "red"), ("Template", "yellow"),
            )},
            "Status": {"select": _options(
                ("Draft", "gray"), ("Review", "yellow"), ("Published", "green"), ("Archived", "red"),
            )},
            "Author": {"people": {}},
            "Category": {"multi_select": _options(
                ("Development", "blue"), ("Design", "pink"), ("Marketing", "orange"), ("Business", "green"),
            )},
            "Tags": {"multi_select": {"options": []}},
            "URL": {"url": {}},
            "Created Date": {"created_time": {}},
            "Last Updated": {"last_edited_time": {}},
            "Summary": {"rich_text": {}},
            "Priority": {"select": _options(("Low", "gray"), ("Medium", "yellow"), ("High", "red"))},
        },
    },
    "event_planning": {
        "title": "Event Planning & Management",
        "description": "Comprehensive event planning system with timeline, vendors, and attendees",
        "properties": {
            "Event Name": {"title": {}},
            "Event Type": {"select": _options(
                ("Conference", "blue"), ("Workshop", "green"), ("Webinar", "yellow"),
                ("Networking", "purple"), ("Launch", "red"),
            )},
            "Status": {"select": _options(
                ("Planning", "gray"), ("Confirmed", "blue"), ("In Progress", "yellow"),
                ("Completed", "green"), ("Cancelled", "red"),
            )},
            "Event Date": {"date": {}},
            "Location": {"rich_text": {}},
            "Expected Attendees": {"number": {}},
            "Budget": {"number": {"format": "dollar"}},
            "Event Manager": {"people": {}},
            "Vendors": {"multi_select": {"options": []}},
            "Notes": {"rich_text": {}},
        },
    },
}

AUTOMATION_WORKFLOWS: Dict[str, Dict[str, Any]] = {
    "recurring_projects": {
        "name": "Monthly Project Setup",
        "description": "Automatically create project databases every month",
        "trigger": "schedule",
        "schedule": "0 0 1 * *",
        "action": "create_database",
        "template": "project_management",
    },
    "quarterly_reviews": {
        "name": "Quarterly Business Review",
        "description": "Create review databases every quarter",
        "trigger": "schedule",
        "schedule": "0 0 1 */3 *",
        "action": "create_database",
        "template": "business_review",
    },
    "event_followup": {
        "name": "Event Follow-up Database",
        "description": "Create follow-up database after events",
        "trigger": "webhook",
        "condition": "event_completed",
        "action": "create_database",
        "template": "followup_tracker",
    },
}
