import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the service and the command line tool."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # requests logs every connection through urllib3 at debug level
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))
