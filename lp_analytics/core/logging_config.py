import logging
import sys

def setup_logging(level: str = "INFO"):
    """Configure structured logging"""

    formatter = logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    # Avoid stacking handlers when the app module is imported more than once
    if not any(getattr(h, "_lp_analytics", False) for h in root_logger.handlers):
        console_handler._lp_analytics = True
        root_logger.addHandler(console_handler)

    # Silence noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return root_logger
