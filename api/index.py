"""
Vercel serverless function handler for the simulator API.
"""
import os
import sys
from pathlib import Path

backend_path = Path(__file__).parent.parent / "backend"
sys.path.insert(0, str(backend_path))

# Serverless bundles ship the published database alongside the code
if "SQLITE_PATH" not in os.environ:
    project_root = Path(__file__).parent.parent
    os.environ["SQLITE_PATH"] = str(project_root / "data" / "simulator.sqlite")

from mangum import Mangum
from app.main import app

# lifespan creates the schema on cold start
handler = Mangum(app, lifespan="auto")
