"""
Durable Transaction Store
==========================
Key-value store: RegID → accumulating record (customer info, paid amount,
receipt URL, card digits). The store never merges and never locks; callers
read → merge → write through merge_record().
"""

import json
import logging
import os
import re
import tempfile
from typing import Any, Dict

from config.settings import Settings

logger = logging.getLogger("receipts.store")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class TransactionStore:
    """Abstract store interface."""

    def get(self, reg_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    def put(self, reg_id: str, record: Dict[str, Any]) -> None:
        raise NotImplementedError


class FileTransactionStore(TransactionStore):
    """One <RegID>.json file per registration, replaced atomically."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, reg_id: str) -> str:
        name = _UNSAFE_CHARS.sub("_", reg_id) or "_"
        return os.path.join(self.directory, f"{name}.json")

    def get(self, reg_id: str) -> Dict[str, Any]:
        try:
            with open(self._path(reg_id), encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"READ FAIL {reg_id}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def put(self, reg_id: str, record: Dict[str, Any]) -> None:
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f, ensure_ascii=False)
            os.replace(tmp_path, self._path(reg_id))
        except BaseException as e:
            logger.error(f"WRITE FAIL {reg_id}: {e}")
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class DatabaseTransactionStore(TransactionStore):
    """Records kept as JSON text in the registration_records table."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get(self, reg_id: str) -> Dict[str, Any]:
        from modules.receipt.models import RegistrationRecord

        db = self.session_factory()
        try:
            row = db.get(RegistrationRecord, reg_id)
            if not row:
                return {}
            try:
                data = json.loads(row.data or "{}")
            except ValueError:
                logger.warning(f"READ FAIL {reg_id}: corrupt JSON")
                return {}
            return data if isinstance(data, dict) else {}
        finally:
            db.close()

    def put(self, reg_id: str, record: Dict[str, Any]) -> None:
        from modules.receipt.models import RegistrationRecord

        db = self.session_factory()
        try:
            row = db.get(RegistrationRecord, reg_id)
            payload = json.dumps(record, ensure_ascii=False)
            if row:
                row.data = payload
            else:
                db.add(RegistrationRecord(reg_id=reg_id, data=payload))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def merge_record(store: TransactionStore, reg_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read the latest snapshot, overlay non-None updates, write back.
    Returns the merged record. Not atomic across concurrent callers.
    """
    record = store.get(reg_id)
    record.update({k: v for k, v in updates.items() if v is not None})
    store.put(reg_id, record)
    return record


def build_store(settings: Settings) -> TransactionStore:
    """Pick the store backend from settings."""
    if settings.store_backend == "database":
        from config.database import make_session_factory, create_tables

        session_factory = make_session_factory(settings.database_url)
        create_tables(session_factory)
        logger.info("Transaction store: database")
        return DatabaseTransactionStore(session_factory)

    logger.info(f"Transaction store: files in {settings.receipts_dir}")
    return FileTransactionStore(settings.receipts_dir)
