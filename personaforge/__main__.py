import os

from dotenv import load_dotenv

from personaforge.cli.commands import app

# Load .env file from ~/.personaforge/ if it exists
# Precedence: existing env vars > .env file (override=False)
load_dotenv(os.path.expanduser("~/.personaforge/.env"), override=False)

if __name__ == "__main__":
    app()
