#!/usr/bin/env python3
"""
Quote Mailer — Application Entry Point
Configures logging and builds the Flask app.
"""

import os

from quote_mailer.api.server import create_app
from quote_mailer.core.logging_config import setup_logging

setup_logging()

# For gunicorn: gunicorn app:app
app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=False)
