import json
import logging
import uuid
from pathlib import Path
from typing import List

from pydantic import ValidationError

from smartcia import schemas
from smartcia.config import DATA_DIR
from smartcia.store import Repositories

logger = logging.getLogger(__name__)


def load_exams_from_file(path: Path) -> list:
    """
    Load JSON with utf-8-sig to tolerate BOM.
    A single exam object is wrapped as a one-item list.
    """
    with path.open("r", encoding="utf-8-sig") as f:
        data = json.load(f)
    if not isinstance(data, list):
        logger.warning("%s is not a list; wrapping as single-item list", path.name)
        data = [data]
    return data


def _assign_question_ids(raw_questions: list) -> None:
    """Keep unique string ids; give missing or colliding ones a fresh id."""
    used: set[str] = set()
    for q in raw_questions:
        qid = q.get("id")
        if not isinstance(qid, str) or not qid or qid in used:
            qid = uuid.uuid4().hex
            q["id"] = qid
        used.add(qid)


def validate_exam(raw: dict, source: str = "") -> schemas.Exam:
    """
    Fill defaults and validate one exam dict.
    Raises ValueError (pydantic ValidationError included) on bad input.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"[{source}] exam entry is not an object")
    questions = raw.get("questions")
    if not isinstance(questions, list) or not questions:
        raise ValueError(f"[{source}] exam '{raw.get('title')}' has no questions")
    for q in questions:
        if not isinstance(q, dict):
            raise ValueError(f"[{source}] question entry is not an object")
        q.setdefault("options", [])
        # Rough corruption check: replacement char
        for txt in [q.get("text", "")] + [o for o in (q.get("options") or []) if isinstance(o, str)]:
            if isinstance(txt, str) and "\ufffd" in txt:
                raise ValueError(f"[{source}] question {q.get('id')} contains replacement character; fix encoding")
    _assign_question_ids(questions)

    raw.setdefault("id", uuid.uuid4().hex)
    raw.setdefault("created_by", "import")
    raw.setdefault("is_published", True)
    return schemas.Exam.model_validate(raw)


def import_exams(repos: Repositories, data_dir: Path = DATA_DIR) -> List[schemas.Exam]:
    """
    Scan data_dir/*.json and store every valid exam.
    Unreadable files and invalid exams are logged and skipped.
    """
    imported: List[schemas.Exam] = []
    if not data_dir.is_dir():
        logger.info("no exam data directory at %s", data_dir)
        return imported

    for file_path in sorted(data_dir.rglob("*.json")):
        try:
            entries = load_exams_from_file(file_path)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("failed to load %s: %s", file_path, e)
            continue

        for raw in entries:
            try:
                exam = validate_exam(raw, file_path.name)
            except (ValueError, ValidationError) as e:
                logger.error("skip invalid exam in %s: %s", file_path.name, e)
                continue
            repos.exams.put(exam)
            imported.append(exam)

        logger.info("loaded: %s (%d entries)", file_path.name, len(entries))
    return imported


def prepare_store(repos: Repositories, data_dir: Path = DATA_DIR) -> int:
    """Seed the exam collection from data_dir when it is empty. Returns the number imported."""
    if repos.exams.all():
        logger.info("[startup] exams already stored. skipping import")
        return 0
    return len(import_exams(repos, data_dir))
