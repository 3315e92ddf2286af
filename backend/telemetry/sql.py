from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS events (
  ts_ms BIGINT,
  kind TEXT,
  name TEXT,
  context TEXT,
  error_code TEXT,
  error_message TEXT,
  north DOUBLE,
  south DOUBLE,
  east DOUBLE,
  west DOUBLE,
  params_json TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  kind,
  name,
  COUNT(*) AS n,
  AVG(try_cast(json_extract_string(params_json, '$.elapsedMs') AS DOUBLE)) AS avg_elapsed_ms,
  quantile_cont(try_cast(json_extract_string(params_json, '$.elapsedMs') AS DOUBLE), 0.95) AS p95_elapsed_ms,
  AVG(CASE WHEN try_cast(json_extract_string(params_json, '$.cacheHit') AS BOOLEAN) THEN 1 ELSE 0 END) AS cache_hit_rate
FROM events
{where_sql}
GROUP BY kind, name
ORDER BY kind, name
"""

RECENT_ERRORS_SQL = """
SELECT ts_ms, context, error_code, error_message
FROM events
WHERE kind = 'error'
ORDER BY ts_ms DESC
LIMIT ?
"""

INSERT_EVENTS_SQL = """
INSERT INTO events
  (ts_ms, kind, name, context, error_code, error_message, north, south, east, west, params_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
