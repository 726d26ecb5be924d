from psycopg_pool import ConnectionPool
from .settings import settings

# Opened on first use so importing the app never needs a database.
pool = ConnectionPool(conninfo=settings.DATABASE_URL, min_size=1, max_size=settings.DB_POOL_MAX_SIZE, open=False)

def db_ok() -> bool:
    try:
        if pool.closed:
            pool.open(wait=True, timeout=5)
        with pool.connection() as conn, conn.cursor() as cur:
            cur.execute('select 1;')
            cur.fetchone()
        return True
    except Exception:
        return False
