import os
import time
from typing import Any, Dict, Iterable

import psycopg2
from dotenv import load_dotenv

from .config_loader import get_config_path
from .logger import get_logger

logger = get_logger(__name__)

MAX_ATTEMPTS = 3


def _env_path() -> str:
    return get_config_path('db.env')


def get_db_connection():
    """
    Establishes a connection with a specific timeout and SSL mode.
    Credentials come from db.env (SUPABASE_DB_*), loaded on every call.
    """
    env_path = _env_path()
    load_dotenv(env_path, override=True)

    host = os.getenv("SUPABASE_DB_HOST")
    sslmode = os.getenv("SUPABASE_DB_SSLMODE", "require")

    if not host:
        raise ValueError(f"Database credentials not found. Checked env file: {env_path}")

    return psycopg2.connect(
        host=host,
        dbname=os.getenv("SUPABASE_DB_NAME"),
        user=os.getenv("SUPABASE_DB_USER"),
        password=os.getenv("SUPABASE_DB_PASSWORD"),
        port=os.getenv("SUPABASE_DB_PORT"),
        sslmode=sslmode,
        connect_timeout=10
    )


# One row per student x subject x grade x classroom x period x activity.
# Requires the matching unique constraint on "Notas".
SQL_UPSERT_GRADE = """
    INSERT INTO "Notas" (
        codigo_estudiantil, asignatura, grado, salon, periodo,
        nombre_actividad, porcentaje, nota, comentario, notificado
    ) VALUES (
        %(codigo_estudiantil)s, %(asignatura)s, %(grado)s, %(salon)s, %(periodo)s,
        %(nombre_actividad)s, %(porcentaje)s, %(nota)s, %(comentario)s, %(notificado)s
    )
    ON CONFLICT (codigo_estudiantil, asignatura, grado, salon, periodo, nombre_actividad) DO UPDATE SET
        porcentaje = EXCLUDED.porcentaje,
        nota = EXCLUDED.nota,
        comentario = EXCLUDED.comentario,
        notificado = EXCLUDED.notificado;
"""


def save_grade_rows_to_db(rows: Iterable[Dict[str, Any]]) -> int:
    """
    Upserts grade rows (teacher marks or derived finals) into "Notas" in a
    single transaction. Last write wins on the row key.

    Retries up to MAX_ATTEMPTS times on timeouts and locks; any other error
    is logged and re-raised. Returns the number of rows written.
    """
    rows = list(rows)
    if not rows:
        return 0

    for attempt in range(MAX_ATTEMPTS):
        conn = None
        try:
            conn = get_db_connection()
            with conn.cursor() as cur:
                cur.execute("SET statement_timeout = 15000;")
                for row in rows:
                    cur.execute(SQL_UPSERT_GRADE, row)

            conn.commit()
            return len(rows)
        except Exception as e:
            if conn:
                conn.rollback()
            message = str(e).lower()
            if ("timeout" in message or "lock" in message) and attempt < MAX_ATTEMPTS - 1:
                logger.warning(f"[DB RETRY] intento {attempt + 1}/{MAX_ATTEMPTS}: {e}")
                time.sleep(1)
                continue
            logger.error(f"[DB ERROR] {rows[0].get('codigo_estudiantil')} / {rows[0].get('asignatura')}: {e}")
            raise
        finally:
            if conn:
                conn.close()


def ping_database() -> bool:
    """Keep-alive / connectivity check: runs SELECT 1 and reports the result."""
    try:
        conn = get_db_connection()
    except (ValueError, psycopg2.Error) as e:
        logger.error(f"Error al enviar el latido: {e}")
        return False

    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1;")
            result = cur.fetchone()
        logger.info(f"Ping exitoso. La base de datos respondió: {result[0]}")
        return True
    except psycopg2.Error as e:
        logger.error(f"Error al enviar el latido: {e}")
        return False
    finally:
        conn.close()
