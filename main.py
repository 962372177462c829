from logging.config import dictConfig

from core.settings import LOGGING_CONFIG
from acquisition.cli import main as run_cli

dictConfig(LOGGING_CONFIG)

def main():
    raise SystemExit(run_cli())

if __name__ == "__main__":
    main()
