"""
Airflow DAG for the METAR ingest project.

This DAG schedules the hourly METAR run:
- Triggers the FastAPI pipeline endpoint to download, validate, and upsert the METAR cache
- Provides start and end tasks for clear DAG visualization
- Uses HttpOperator to call the API endpoint inside the app container

Usage hints:
- Requires an Airflow HTTP connection named 'app_api' (see Airflow UI > Admin > Connections)
- The 'app_api' connection is created automatically with the Airflow container using the environment variable:
    AIRFLOW_CONN_APP_API=http://app:8000
- The endpoint answers with a non-2xx status on any pipeline failure, which fails the task.
- No retries: a failed run keeps its downloaded file for inspection, and the next hourly
  run fetches a fresh cache anyway.
"""

import json
from datetime import datetime

from airflow.decorators import dag, task
from airflow.providers.http.operators.http import HttpOperator

default_args = {
    'owner': 'airflow',
    'depends_on_past': False,
    'retries': 0,
}


@dag(
    default_args=default_args,
    description='Hourly METAR cache ingest',
    schedule='@hourly',
    start_date=datetime(2024, 1, 1),
    catchup=False,
    max_active_runs=1,
    tags=['metar', 'pipeline']
)
def metar_pipeline():
    """
    Orchestrates one METAR ingest run per hour.
    - start: marker task
    - run_pipeline_task: POST /v1/run-pipeline with download enabled
    - end: marker task
    """
    @task
    def start():
        """Start marker for DAG visualization."""
        print("Starting the METAR pipeline DAG.")

    @task
    def end():
        """End marker for DAG visualization."""
        print("METAR pipeline DAG completed.")

    start_task = start()
    run_pipeline_task = HttpOperator(
        task_id='trigger_metar_pipeline',
        http_conn_id='app_api',  # Must match Airflow connection name
        endpoint='v1/run-pipeline',
        method='POST',
        headers={'Content-Type': 'application/json'},
        data=json.dumps({"download": True}),
        log_response=True
    )
    end_task = end()

    start_task >> run_pipeline_task >> end_task


metar_pipeline_dag = metar_pipeline()
