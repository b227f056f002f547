# config
CONFIG_API_TOKEN_KEY = "api_token"
CONFIG_BASE_URL_KEY = "base_url"
CONFIG_MODEL_KEY = "model"
CONFIG_LORA_WEIGHTS_KEY = "lora_weights"
CONFIG_PROMPT_PATTERNS_KEY = "prompt_patterns"
CONFIG_CUSTOM_WIDTH_KEY = "custom_width"
CONFIG_CUSTOM_HEIGHT_KEY = "custom_height"
CONFIG_TIMEOUT_SEC_KEY = "timeout_sec"
CONFIG_POLL_INTERVAL_SEC_KEY = "poll_interval_sec"
CONFIG_MAX_POLL_ATTEMPTS_KEY = "max_poll_attempts"
CONFIG_FILES_DIR_KEY = "files_dir"

# state
PLUGIN_STATE_KEY = "lazy_sketch_state"
SELECTED_PATTERN_KEY = "selected_pattern"
LAST_GENERATION_TIME_MS_KEY = "last_generation_time_ms"
