# sql2csv/defaults.py
"""Default settings - no imports to avoid circular dependencies."""

settings = {
    'default_db_type': 'sqlserver',
    'delimiter': ',',
    'eol': 'crlf',              # 'crlf' (RFC 4180) or 'lf'
    'include_headers': False,
    'quoting': 'all',           # 'all' or 'nonnumeric'
    'invalid_utf8': 'ignore',   # 'ignore' drops ill-formed bytes, 'replace' inserts U+FFFD
    'output_buffer_size': 10 * 1024 * 1024,  # 10MB write buffer
    'progress_interval': 50,    # rows between live progress updates
    'output_file_mode': 0o600,
    'null_string': '',          # how null is represented in text outputs
    'null_string_csv': '',      # how null is represented in CSV outputs
    'date_format': '%Y-%m-%d',
    'time_format': '%H:%M:%S',
    'datetime_format': '%Y-%m-%d %H:%M:%S',
    'timestamp_format': '%Y-%m-%d %H:%M:%S.%f',  # with microseconds
    'tz_suffix': ' %z',
    'logging': {
        'directory': './logs',  # Set to '' to log to console only
        'level': 'INFO',
        'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        'timestamp_format': '%Y-%m-%d %H:%M:%S',
        'filename_format': '%Y%m%d_%H%M%S',  # Set to '' for single log file (no timestamp)
        'split_errors': True,
        'console': True,
        'retention_days': 30,
    }
}
