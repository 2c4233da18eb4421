"""
Quote Mailer — quote request → PDF → email, with duplicate suppression

Packages:
    api/        Flask app factory and routes
    forms/      Request validation and PDF generation
    agents/     Mail delivery and orchestration
    core/       Config, logging, paths, fingerprints, tokens, dedup cache
"""

__version__ = "1.0.0"
