"""
Vault Chat Entry Point
----------------------
Runs the setup wizard, then serves the API with uvicorn.
"""

import uvicorn
import sys
import os
from dotenv import load_dotenv

load_dotenv()

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from vault_chat.startup import run_interactive_config
from vault_chat.config import get_config

def export_config(config):
    """The reload worker is a fresh process; it re-reads the wizard's choices from env."""
    os.environ["VAULT_MAIN_HOST"] = config.main_model.host
    os.environ["VAULT_MAIN_MODEL"] = config.main_model.model_name
    os.environ["VAULT_EMBED_HOST"] = config.embedding_model.host
    os.environ["VAULT_EMBED_MODEL"] = config.embedding_model.model_name
    if config.vault_path:
        os.environ["VAULT_PATH"] = config.vault_path

def main():
    try:
        run_interactive_config()
    except KeyboardInterrupt:
        print("\nSetup cancelled.")
        return

    config = get_config()
    if not config.is_configured:
        print("No chat or embedding model selected. Exiting.")
        return

    export_config(config)
    port = int(os.getenv("VAULT_PORT", "8000"))
    print(f"Serving Vault Chat on port {port}...")
    uvicorn.run("vault_chat.app:app", host="0.0.0.0", port=port, reload=True, forwarded_allow_ips="*", log_level="info")

if __name__ == "__main__":
    main()
