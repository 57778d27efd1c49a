from pathlib import Path

# Import configuration management
import sys
sys.path.append(str(Path(__file__).parent.parent))
from config_manager import ConfigManager

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

app = Flask(__name__)

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

# Load configuration
config_manager = ConfigManager()
app_config = config_manager.get_app_config()
paths_config = config_manager.get_paths_config()
visit_stats_config = config_manager.get_visit_stats_config()

if app_config.trust_proxy:
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_for=1,     # trust 1 hop for X-Forwarded-For
        x_proto=1,   # trust 1 hop for X-Forwarded-Proto
        x_host=1)    # trust 1 hop for X-Forwarded-Host

# Set up directories
DATABASE_DIR = Path(__file__).parent.parent / paths_config.database_dir
VISITS_FILE = DATABASE_DIR / paths_config.visits_file

DATABASE_DIR.mkdir(parents=True, exist_ok=True)

# -----------------------------------------------------------------------------
# Visit Stats
# -----------------------------------------------------------------------------

from app.visit_stats.factory import create_visit_stats_module

visit_stats_module = create_visit_stats_module(
    visits_file=VISITS_FILE,
    stats_config=visit_stats_config
)

# Register visit stats blueprint
app.register_blueprint(visit_stats_module["blueprint"])

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@app.route("/", methods=["GET"])
def index():
    """Service status (visits to this path are recorded by the visit stats hook)."""
    return jsonify({
        "status": "ok",
        "service": "omnizap-site",
        "stats": "/api/visit-stats"
    })
