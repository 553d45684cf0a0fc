"""KBIndex configuration defaults, resolved through navconfig."""
from pathlib import Path
from navconfig import config, BASE_DIR


# LLM provider (OpenAI-compatible chat completions)
OPENAI_API_KEY = config.get('OPENAI_API_KEY')
OPENAI_BASE_URL = config.get(
    'OPENAI_BASE_URL',
    fallback='https://api.openai.com/v1'
)
KB_LLM_MODEL = config.get('KB_LLM_MODEL', fallback='gpt-4o-2024-11-20')
KB_LLM_TEMPERATURE = float(config.get('KB_LLM_TEMPERATURE', fallback=0.7))
KB_LLM_MAX_TOKENS = config.getint('KB_LLM_MAX_TOKENS', fallback=4096)
KB_LLM_TIMEOUT = config.getint('KB_LLM_TIMEOUT', fallback=60)
KB_LLM_MAX_RETRIES = config.getint('KB_LLM_MAX_RETRIES', fallback=3)

# PageIndex search
KB_PAGEINDEX_STRATEGY = config.get('KB_PAGEINDEX_STRATEGY', fallback='leaf_scan')
KB_PAGEINDEX_MAX_CONCURRENCY = config.getint(
    'KB_PAGEINDEX_MAX_CONCURRENCY',
    fallback=8
)

# PageIndex storage
KB_INDEX_DIR = config.get('KB_INDEX_DIR')
if not KB_INDEX_DIR:
    KB_INDEX_DIR = Path(BASE_DIR).joinpath('workspace')
else:
    KB_INDEX_DIR = Path(KB_INDEX_DIR)

# Optional settings file (YAML) merged over the built-in defaults
KB_SETTINGS_FILE = config.get('KB_SETTINGS_FILE')
