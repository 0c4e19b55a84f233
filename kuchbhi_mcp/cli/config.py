# kuchbhi_mcp/cli/config.py
import os
from dotenv import load_dotenv
from pathlib import Path

# kuchbhi_mcp/cli/config.py -> project root is three levels up
project_root = Path(__file__).parent.parent.parent.resolve()

load_dotenv(dotenv_path=project_root / '.env', override=True)

# Server the CLI talks to
KUCHBHI_CLI_API_BASE_URL = os.getenv("KUCHBHI_CLI_API_BASE_URL", "http://127.0.0.1:8000")
