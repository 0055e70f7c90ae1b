import logging

from dotenv import load_dotenv

from core.bot import PenaltyBoxBot
from core.config import load_config


def main() -> None:
    load_dotenv()
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    bot = PenaltyBoxBot(config)
    bot.run(config.token, log_handler=None)


if __name__ == "__main__":
    main()
