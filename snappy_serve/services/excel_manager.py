"""
Excel Bill Ledger with Concurrency Control

Process-safe append of generated bills to an Excel ledger. Several Celery
workers may export at once; a file lock serializes the read-modify-write.

Version: 1.0.0
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from snappy_serve.core.config import get_settings

logger = logging.getLogger(__name__)


class ExcelManager:
    """Process-safe Excel bill ledger."""

    BILL_COLUMNS = [
        "bill_id",
        "order_id",
        "date_time",
        "table_number",
        "customer_name",
        "items",
        "subtotal",
        "tax",
        "service",
        "total",
        "exported_at",
    ]

    @classmethod
    def _paths(cls, data_dir: Optional[Path] = None) -> tuple[Path, Path]:
        settings = get_settings()
        directory = Path(data_dir or settings.data_directory)
        ledger = directory / settings.bill_ledger_filename
        return ledger, directory / f"{ledger.name}.lock"

    @classmethod
    def _ensure_data_dir(cls, ledger: Path) -> None:
        """Create data directory if needed."""
        if not ledger.parent.exists():
            ledger.parent.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {ledger.parent}")

    @classmethod
    def _load_or_create_df(cls, file_path: Path) -> pd.DataFrame:
        """
        Load existing file or create new DataFrame.

        A ledger that exists but cannot be read raises, so the caller never
        writes an empty frame over earlier bills.
        """
        if file_path.exists():
            return pd.read_excel(file_path, engine="openpyxl")
        return pd.DataFrame(columns=cls.BILL_COLUMNS)

    @classmethod
    def export_bill(
        cls,
        bill_data: dict[str, Any],
        data_dir: Optional[Path] = None,
    ) -> dict[str, Any]:
        """
        Append one bill document (camelCase, as returned by the API).

        A bill id already present in the ledger is not appended again, so a
        retried task cannot double-count revenue.
        """
        ledger, lock_path = cls._paths(data_dir)
        cls._ensure_data_dir(ledger)
        lock_timeout = get_settings().excel_lock_timeout

        bill_id = bill_data.get("id", "unknown")
        result = {
            "success": False,
            "message": "",
            "bill_id": bill_id,
            "exported_at": None,
        }

        try:
            with FileLock(str(lock_path), timeout=lock_timeout):
                logger.debug(f"Lock acquired for Bill {bill_id}")

                df = cls._load_or_create_df(ledger)
                if bill_id in set(df["bill_id"].astype(str)):
                    result["success"] = True
                    result["message"] = f"Bill {bill_id} already exported"
                    return result

                export_time = datetime.now().isoformat()
                created_at = bill_data.get("createdAt")
                new_row = {
                    "bill_id": bill_id,
                    "order_id": bill_data.get("orderId"),
                    "date_time": (
                        datetime.fromtimestamp(created_at / 1000).isoformat()
                        if created_at else export_time
                    ),
                    "table_number": bill_data.get("tableNumber"),
                    "customer_name": bill_data.get("customerName"),
                    "items": json.dumps(bill_data.get("items", [])),
                    "subtotal": bill_data.get("subtotal"),
                    "tax": bill_data.get("tax"),
                    "service": bill_data.get("service"),
                    "total": bill_data.get("total"),
                    "exported_at": export_time,
                }

                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(ledger), index=False, engine="openpyxl")

                logger.info(f"Bill {bill_id} exported to Excel")

                result["success"] = True
                result["message"] = f"Bill {bill_id} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for Bill {bill_id}")

        except Timeout:
            result["message"] = f"Lock timeout ({lock_timeout}s)"
            logger.error(f"Lock timeout for Bill {bill_id}")

        except Exception as e:
            result["message"] = str(e)
            logger.exception(f"Error exporting Bill {bill_id}")

        return result

    @classmethod
    def get_all_bills(cls, data_dir: Optional[Path] = None) -> list[dict[str, Any]]:
        """Get all ledger rows."""
        ledger, _ = cls._paths(data_dir)
        if not ledger.exists():
            return []

        try:
            df = pd.read_excel(ledger, engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading bill ledger: {e}")
            return []

    @classmethod
    def clear_all(cls, data_dir: Optional[Path] = None) -> bool:
        """Delete the ledger and its lock file."""
        try:
            for f in cls._paths(data_dir):
                if f.exists():
                    f.unlink()
            logger.info("Bill ledger cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing files: {e}")
            return False
