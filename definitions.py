from pathlib import Path

# Define the root directory of the project
ROOT_DIR = Path(__file__).resolve().parent

# Define specific directories
LOGS_DIR = ROOT_DIR / "logs"
CONFIG_DIR = ROOT_DIR / "config"
DATA_DIR = ROOT_DIR / "data"

DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"
DEFAULT_STORE_PATH = DATA_DIR / "postedTweets.json"
DEFAULT_CAPTURE_DIR = DATA_DIR / "captures"
