import os
from pathlib import Path

# Project root (smartcia/config.py -> ..)
BASE_DIR = Path(__file__).resolve().parents[1]

STORAGE_DIR = Path(os.getenv("STORAGE_DIR", BASE_DIR / "storage"))
DATA_DIR = Path(os.getenv("DATA_DIR", BASE_DIR / "data"))
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{(STORAGE_DIR / 'smartcia.db').as_posix()}")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GRADING_TIMEOUT_SECONDS = float(os.getenv("GRADING_TIMEOUT_SECONDS", "8.0"))

# Share of max score needed to pass an exam
PASS_THRESHOLD = float(os.getenv("PASS_THRESHOLD", "0.4"))
