"""
listing-spine - durable publishing and orchestration core.

Turns user-authored drafts (properties, PG/hostels, projects, developer
profiles) into published entities, runs the payment saga and the listing
approval workflow, on either a durable journal-backed engine or a direct
in-process fallback.
"""

__version__ = "0.1.0"
