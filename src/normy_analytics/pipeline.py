import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Optional

# --- Internal Imports ---
from normy_analytics.api.services import load_snapshot
from normy_analytics.indicators.finals import all_finals
from normy_analytics.snapshot import Snapshot
from normy_analytics.utils.config_loader import load_config
from normy_analytics.utils.db import save_grade_rows_to_db
from normy_analytics.utils.logger import get_logger

logger = get_logger(__name__)

# --- Global Settings ---
DEFAULT_MAX_WORKERS = 4


# --- WORKER ---
def execute_finals_task(
    snapshot: Snapshot,
    student_code: str,
    subject: str,
    save_fn: Callable = save_grade_rows_to_db,
) -> Dict[str, Any]:
    """Recomputes and persists the derived finals of one student/subject."""
    key = f"{student_code} / {subject}"
    try:
        rows = all_finals(student_code, subject, snapshot)
        if not rows:
            return {"status": "skipped", "id": key, "reason": "Sin actividades calificadas"}

        save_fn([r.to_row() for r in rows])
        return {"status": "success", "id": key, "rows": len(rows)}
    except Exception as e:
        return {"status": "error", "id": key, "error": str(e)}


# --- MAIN PIPELINE ---
def run_pipeline(
    progress_callback: Optional[Callable[[int, int], None]] = None,
    log_callback: Optional[Callable[[str], None]] = None,
    stop_event: Optional[threading.Event] = None,
    config=None,
    save_fn: Callable = save_grade_rows_to_db,
) -> Dict[str, int]:
    """
    Batch refresh of "Final Periodo" / "Final Definitiva" for the whole school.
    Returns the count of tasks per status.
    """

    def log(msg: str):
        if log_callback:
            log_callback(msg)
        else:
            logger.info(msg)

    summary = {"success": 0, "skipped": 0, "error": 0}

    log("--- Normy Analytics: Recalculando notas finales ---")
    if stop_event and stop_event.is_set():
        return summary

    if config is None:
        config = load_config()
    max_workers = int(config['ANALISIS']['max_workers']) if 'ANALISIS' in config else DEFAULT_MAX_WORKERS

    log(" [1/3] Descargando notas, actividades y estudiantes...")
    try:
        snapshot = load_snapshot(config)
    except ConnectionError as e:
        logger.error(f"Fallo la descarga de datos: {e}")
        summary["error"] += 1
        log(f" [!] Error: {e}")
        return summary

    if stop_event and stop_event.is_set():
        return summary

    log(" [2/3] Armando la cola de estudiantes y asignaturas...")
    tasks_queue = [
        (student.code, subject)
        for student in snapshot.students
        for subject in snapshot.subjects_of(student.code)
    ]

    total_tasks = len(tasks_queue)
    if total_tasks == 0:
        log(" [!] No hay notas registradas para recalcular.")
        if progress_callback:
            progress_callback(1, 1)
        return summary

    log(f" [3/3] Procesando {total_tasks} combinaciones estudiante/asignatura...")

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(execute_finals_task, snapshot, code, subject, save_fn): (code, subject)
            for code, subject in tasks_queue
        }

        for i, future in enumerate(as_completed(futures), 1):
            if stop_event and stop_event.is_set():
                log(" Proceso detenido por el usuario.")
                executor.shutdown(wait=False, cancel_futures=True)
                break

            result = future.result()
            summary[result["status"]] += 1
            progress_pct = (i / total_tasks) * 100

            if result["status"] == "success":
                log(f" {progress_pct:.1f}% OK | {result['id']} | {result['rows']} finales")
            elif result["status"] == "skipped":
                log(f" {progress_pct:.1f}% OMITIR | {result['id']} | {result.get('reason')}")
            else:
                log(f" {progress_pct:.1f}% ERR | {result['id']} | {result.get('error')}")

            if progress_callback:
                progress_callback(i, total_tasks)

    if stop_event and stop_event.is_set():
        log("--- Proceso CANCELADO ---")
    else:
        log("--- Proceso Finalizado con Éxito ---")
    return summary


if __name__ == "__main__":
    run_pipeline()
