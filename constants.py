# constants.py

# Descriptor
DESCRIPTOR_CREATOR = "HFM Drop"
DESCRIPTOR_PREFIX = "seed_"
DESCRIPTOR_SUFFIX = ".torrent"

# Progress phases
PHASE_SENDING = "sending"
PHASE_RECEIVING = "receiving"

# Defaults
DEFAULT_CONFIG_PATH = "config.toml"
DEFAULT_LOG_PATH = "logs/app.jsonl"
DEFAULT_SAVE_PATH = "downloads"
DEFAULT_LISTEN_INTERFACES = "0.0.0.0:6881,[::]:6881"
