"""
metar_ingest package initializer.

Loads environment variables from .env files for the pipeline:
- Tries to load metar_ingest/.env first (local to this package)
- If not found, loads .env from the project root

Variables already set in the process environment (cron, Airflow, Docker) win
over values from the file.
"""

import os
from dotenv import load_dotenv

package_env_path = os.path.join(os.path.dirname(__file__), ".env")
root_env_path = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".env"))
if os.path.exists(package_env_path):
    load_dotenv(package_env_path)
else:
    load_dotenv(root_env_path)
