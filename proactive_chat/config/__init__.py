import os
import json
from pathlib import Path
from dotenv import load_dotenv
from .logging_config import setup_app_logging
import logging

# Load environment variables from .env file
load_dotenv()

# Get the config directory path (where this file is located)
CONFIG_DIR = Path(__file__).parent

# The package root holds config/, core/, services/ ...; user data lives one level above it
PROJECT_ROOT = CONFIG_DIR.parent.parent

# Load configuration from config.json
config_path = CONFIG_DIR / 'config.json'
with open(config_path, 'r', encoding='utf-8') as f:
    CONFIG = json.load(f)

CONFIG['project_root'] = str(PROJECT_ROOT)

if 'paths' not in CONFIG:
    CONFIG['paths'] = {}

user_data_base_name = CONFIG.get('paths', {}).get('user_data_base_dir_name', 'user_data')
conversations_subdir_name = CONFIG.get('paths', {}).get('conversations_subdir_name', 'conversations')

# USER_DATA_DIR lets deployments (and tests) move archives out of the source tree
user_data_root = Path(os.getenv('USER_DATA_DIR', str(PROJECT_ROOT / user_data_base_name)))
CONFIG['paths']['user_data_full_path'] = str(user_data_root)
CONFIG['paths']['conversations_full_path'] = str(user_data_root / conversations_subdir_name)

# --- System Prompt Loading ---
# One prompt per gateway operation. Missing optional prompts fall back to an empty system message
PROMPT_FILES = {
    'response_message': 'response_system_prompt.txt',
    'proactive_message': 'proactive_system_prompt.txt',
    'notification_message': 'notification_system_prompt.txt',
    'reminder_extraction_message': 'reminder_extraction_prompt.txt',
    'calendar_extraction_message': 'calendar_extraction_prompt.txt',
}

for config_key, filename in PROMPT_FILES.items():
    prompt_path = CONFIG_DIR / filename
    try:
        with open(prompt_path, 'r', encoding='utf-8') as f:
            CONFIG[config_key] = f.read().strip()
    except FileNotFoundError:
        if config_key in ('reminder_extraction_message', 'calendar_extraction_message'):
            raise FileNotFoundError(
                f"Extraction prompt file not found: {prompt_path}\n"
                f"Please ensure {filename} exists in the config directory."
            )
        CONFIG[config_key] = ''

# Environment variables. The key is optional at import time: a missing key surfaces as a
# gateway failure on the first LLM call instead of crashing the process.
ENV = {
    'LLM_API_KEY': os.getenv('OPENROUTER_API_KEY') or os.getenv('LLM_API_KEY'),
}


def validate_config():
    """Validate that the configuration has the structure the gateway and orchestrator rely on.

    Only structural keys are checked here. The API key is intentionally not required; see ENV above.
    """
    required_services = ['llm']
    for service in required_services:
        if service not in CONFIG:
            raise ValueError(f"Missing configuration for service: {service}")

    required_models = ['response', 'proactive', 'notification', 'reminder', 'calendar_event']
    for model in required_models:
        if model not in CONFIG['llm'].get('models', {}):
            raise ValueError(f"Missing configuration for LLM model: {model}")
        if 'settings' not in CONFIG['llm']['models'][model]:
            raise ValueError(f"Missing settings for LLM model: {model}")

# Validate configuration on module import
validate_config()

# --- Helper function to get config value from CONFIG or environment variable ---
def get_config_value(json_keys: list, env_var_name: str, default_value: any = None):
    """
    Retrieves a configuration value.
    Priority:
    1. Environment variable (if env_var_name is provided and variable is set).
    2. Value from CONFIG dictionary (using json_keys).
    3. default_value.
    """
    # Try environment variable first
    if env_var_name:
        env_value = os.getenv(env_var_name)
        if env_value is not None:
            # Attempt to match type of default_value if it's bool, int or float
            if isinstance(default_value, bool):
                if env_value.lower() == 'true': return True
                if env_value.lower() == 'false': return False
            elif isinstance(default_value, int):
                try:
                    return int(env_value)
                except ValueError:
                    pass
            elif isinstance(default_value, float):
                try:
                    return float(env_value)
                except ValueError:
                    pass
            return env_value

    # Try from CONFIG dictionary (loaded from JSON)
    current_level = CONFIG
    try:
        for key in json_keys:
            current_level = current_level[key]
        if isinstance(current_level, (str, int, bool, float, list, dict)):
            return current_level
    except (KeyError, TypeError):
        pass

    # Fallback to default value
    return default_value

# --- Runtime overrides ---
# The model identifier keeps the OPENROUTER_MODEL name used by earlier deployments
CONFIG['llm']['model'] = get_config_value(['llm', 'model'], 'OPENROUTER_MODEL', 'anthropic/claude-3-sonnet')
CONFIG['llm']['base_url'] = get_config_value(['llm', 'base_url'], 'LLM_BASE_URL', 'https://openrouter.ai/api/v1')
CONFIG['llm']['timeout'] = get_config_value(['llm', 'timeout'], 'LLM_TIMEOUT', 30)

CONFIG['proactive'] = {
    'enabled': get_config_value(['proactive', 'enabled'], 'PROACTIVE_ENABLED', True),
    'quiet_period_seconds': float(get_config_value(
        ['proactive', 'quiet_period_seconds'], 'PROACTIVE_QUIET_PERIOD_SECONDS', 1.5
    )),
    'misfire_grace_seconds': get_config_value(['proactive', 'misfire_grace_seconds'], None, 30),
}

CONFIG['reminders'] = {
    'check_interval_seconds': get_config_value(
        ['reminders', 'check_interval_seconds'], 'REMINDER_CHECK_INTERVAL_SECONDS', 60
    ),
}

# --- Logging Configuration ---
# Environment variables take precedence over config.json.
CONFIG['logging'] = {
    'level': get_config_value(['logging', 'level'], 'LOG_LEVEL', 'INFO'),
    'file_path': get_config_value(['logging', 'file_path'], 'LOG_FILE_PATH', 'logs/proactive_chat.log'),
    'max_bytes': get_config_value(['logging', 'max_bytes'], 'LOG_MAX_BYTES', 5*1024*1024), # 5MB
    'backup_count': get_config_value(['logging', 'backup_count'], 'LOG_BACKUP_COUNT', 3),
    'format': get_config_value(
        ['logging', 'format'],
        'LOG_FORMAT',
        '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s'
    ),
    'date_format': get_config_value(
        ['logging', 'date_format'],
        'LOG_DATE_FORMAT',
        '%Y-%m-%d %H:%M:%S'
    )
}

# --- Setup Application Logging ---
setup_app_logging(config=CONFIG.get('logging'))

config_init_logger = logging.getLogger(__name__)
config_init_logger.info("[config_init] Logging initialized from config/__init__.py using setup_app_logging.")
