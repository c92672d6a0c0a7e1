import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

import database

# Load .env from project root (parent directory)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

logger = logging.getLogger(__name__)

app = Flask(__name__)

CORS(
    app,
    origins=os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(","),
)

# Emails with inline HTML and base64 PDF attachments can be large (16MB)
app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024

# ============================================================================
# REGISTER BLUEPRINTS
# ============================================================================

from routes import catalog_bp, emails_bp, health_bp, inventory_bp

app.register_blueprint(health_bp)
app.register_blueprint(emails_bp)
app.register_blueprint(catalog_bp)
app.register_blueprint(inventory_bp)


# ============================================================================
# APPLICATION STARTUP
# ============================================================================

if __name__ == "__main__":
    database.init_db()
    seeded = database.seed_vendor_patterns()

    print("\n" + "=" * 50)
    print("Optical Order Pipeline Starting...")
    print("=" * 50)
    print(f"Vendors seeded: {seeded}")
    print("API available at: http://localhost:5000")
    print("Test health: http://localhost:5000/api/health")
    print("=" * 50 + "\n")

    app.run(debug=False, use_reloader=False, host="0.0.0.0", port=5000)
