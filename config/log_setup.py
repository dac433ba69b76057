import logging

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def configure_logging(level='INFO'):
    """Attach one stream handler to the root logger (safe to call twice)."""
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, '_gradeflow', False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        handler._gradeflow = True
        root.addHandler(handler)
    return root
