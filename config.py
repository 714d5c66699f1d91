import json
import os

# Defaults for a single college deployment. Override with a JSON file
# (EXAMCELL_CONFIG) or EXAMCELL_* environment variables.
DEFAULTS = {
    'DATABASE': 'examcell.db',
    'UPLOAD_FOLDER': 'uploads',
    'MAX_CONTENT_LENGTH': 16 * 1024 * 1024,  # 16MB max upload size
    'COLLEGE_NAME': 'SREE SOWDAMBIKA COLLEGE OF ENGINEERING',
    'PAPER_FEE': 150,
    'DEPARTMENTS': [
        {'code': '114', 'name': 'MECH'},
        {'code': '103', 'name': 'CIVIL'},
        {'code': '105', 'name': 'EEE'},
        {'code': '106', 'name': 'ECE'},
        {'code': '243', 'name': 'AI&DS'},
        {'code': '104', 'name': 'CSE'},
    ],
    'REGULATIONS': ['2017', '2021', '2025'],
    'SEMESTERS': ['I', 'II', 'III', 'IV', 'V', 'VI', 'VII', 'VIII'],
    'SESSIONS': [
        {'code': 'FN', 'name': 'Forenoon'},
        {'code': 'AN', 'name': 'Afternoon'},
    ],
    'BATCHES': ['2025-2028', '2024-2027', '2023-2026', '2022-2025'],
    'DEFAULT_TIMETABLE_REGULATION': '2025',
}

ENV_PREFIX = 'EXAMCELL'


def load_config(app, config=None, config_file=None):
    """
    Populate ``app.config`` once at startup.

    Order: built-in defaults, JSON file, EXAMCELL_* environment variables,
    then explicit ``config`` overrides (used by tests and the importer CLI).
    """
    app.config.from_mapping(DEFAULTS)

    config_file = config_file or os.environ.get(f'{ENV_PREFIX}_CONFIG')
    if config_file:
        app.config.from_file(os.path.abspath(config_file), load=json.load)

    app.config.from_prefixed_env(ENV_PREFIX)

    if config:
        app.config.update(config)

    return app.config


def department_names(config):
    return {d['code']: d['name'] for d in config['DEPARTMENTS']}


def public_settings(config):
    """Settings a client needs to build its selection lists."""
    return {
        'departments': config['DEPARTMENTS'],
        'regulations': config['REGULATIONS'],
        'semesters': config['SEMESTERS'],
        'sessions': config['SESSIONS'],
        'batches': config['BATCHES'],
        'paperFee': config['PAPER_FEE'],
    }
