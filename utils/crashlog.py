# utils/crashlog.py
import os, sys, faulthandler, datetime, traceback, threading, logging
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_log_dir: Optional[str] = None
_fault_file = None


def set_log_dir(path: str) -> str:
    global _log_dir
    _log_dir = os.path.abspath(path)
    return _log_dir


def log_dir() -> str:
    d = _log_dir or os.path.join(os.getcwd(), "logs")
    os.makedirs(d, exist_ok=True)
    return d


def _new_log_path(prefix: str = "crash") -> str:
    stamp = datetime.datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    return os.path.join(log_dir(), f"{prefix}-{stamp}.txt")


def init_logging(level: str = "INFO", log_file: Optional[str] = "melodyspace.log") -> None:
    """Console logging plus a rotating file under log_dir(). Idempotent."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if not log_file:
        return
    try:
        fh = RotatingFileHandler(os.path.join(log_dir(), log_file),
                                 maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning("file logging disabled: %s", e)
        return
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(fh)


def setup_crashlog() -> None:
    global _fault_file
    if _fault_file is None:
        try:
            _fault_file = open(_new_log_path("native"), "w", encoding="utf-8")
            faulthandler.enable(_fault_file, all_threads=True)
        except OSError:
            _fault_file = None

    def _hook(exc_type, exc, tb):
        try:
            with open(_new_log_path("crash"), "w", encoding="utf-8") as out:
                out.write("UNCAUGHT EXCEPTION\n")
                out.write("=" * 60 + "\n")
                traceback.print_exception(exc_type, exc, tb, file=out)
        finally:
            sys.__excepthook__(exc_type, exc, tb)
    sys.excepthook = _hook

    def _thread_hook(args):
        _hook(args.exc_type, args.exc_value, args.exc_traceback)
    threading.excepthook = _thread_hook


def log_exception(title: str, exc: BaseException) -> str:
    path = _new_log_path("error")
    with open(path, "w", encoding="utf-8") as out:
        out.write(f"[{title}] {type(exc).__name__}: {exc}\n")
        out.write("Traceback:\n")
        out.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return path
